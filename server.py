#!/usr/bin/env python3
"""
Sepay Renewal Webhook - Entry Point
Точка входа для запуска сервера
"""

from sepay_renewal.main import main
import asyncio

if __name__ == "__main__":
    asyncio.run(main())
