import re
import unicodedata

_SPACES_RE = re.compile(r"\s+")


def strip_accents(value) -> str:
    """Убирает вьетнамские диакритики (включая đ/Đ, которые NFD не раскладывает)"""
    text = unicodedata.normalize("NFD", str(value or ""))
    text = "".join(ch for ch in text if unicodedata.category(ch) != "Mn")
    return text.replace("đ", "d").replace("Đ", "D")


def normalize_label(value) -> str:
    """Приводит текстовую метку из БД к ключу: без диакритик, нижний регистр, один пробел"""
    return _SPACES_RE.sub(" ", strip_accents(value)).strip().lower()


def split_tokens(text) -> list[str]:
    """Разбивает текст по пробельным символам, пустые части отбрасываются"""
    return [part for part in _SPACES_RE.split(str(text or "").strip()) if part]
