"""
Funções para normalizar e validar dados de entrada do cliente.

Todo caminho que toca CPF ou CEP (identificação, cadastro, kits,
endereços) deve passar por aqui, para que a forma canônica
(apenas dígitos) seja sempre a mesma.
"""
import re
import unicodedata
from datetime import date, datetime
from typing import Optional


# Nome do estado (maiúsculo, sem acento) -> sigla
STATE_NAMES = {
    "ACRE": "AC",
    "ALAGOAS": "AL",
    "AMAPA": "AP",
    "AMAZONAS": "AM",
    "BAHIA": "BA",
    "CEARA": "CE",
    "DISTRITO FEDERAL": "DF",
    "ESPIRITO SANTO": "ES",
    "GOIAS": "GO",
    "MARANHAO": "MA",
    "MATO GROSSO DO SUL": "MS",
    "MATO GROSSO": "MT",
    "MINAS GERAIS": "MG",
    "PARAIBA": "PB",
    "PARANA": "PR",
    "PARA": "PA",
    "PERNAMBUCO": "PE",
    "PIAUI": "PI",
    "RIO DE JANEIRO": "RJ",
    "RIO GRANDE DO NORTE": "RN",
    "RIO GRANDE DO SUL": "RS",
    "RONDONIA": "RO",
    "RORAIMA": "RR",
    "SANTA CATARINA": "SC",
    "SAO PAULO": "SP",
    "SERGIPE": "SE",
    "TOCANTINS": "TO",
}

UFS = frozenset(STATE_NAMES.values())

BIRTH_DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y")


def strip_accents(text: str) -> str:
    """Remove acentos: "São Paulo" vira "Sao Paulo"."""
    return "".join(
        ch for ch in unicodedata.normalize("NFD", text)
        if unicodedata.category(ch) != "Mn"
    )


def digits_only(raw: Optional[str]) -> str:
    """Remove tudo que não é dígito."""
    return re.sub(r"\D", "", raw or "")


def normalize_cpf(raw: Optional[str]) -> Optional[str]:
    """
    Forma canônica do CPF: os 11 dígitos, sem pontuação.

        "123.456.789-01" -> "12345678901"

    Só o formato é conferido (dígitos verificadores não). Sequências
    repetidas como 111.111.111-11 são recusadas. Devolve None se inválido.
    """
    digits = digits_only(raw)
    if len(digits) != 11 or len(set(digits)) == 1:
        return None
    return digits


def normalize_cep(raw: Optional[str]) -> Optional[str]:
    """
    Normaliza CEP para 8 dígitos.

        "01234-567" → "01234567"
    """
    digits = digits_only(raw)
    if len(digits) != 8:
        return None
    return digits


def normalize_phone(raw: Optional[str]) -> Optional[str]:
    """
    Telefone no formato "+55 DD XXXXX-XXXX" (ou XXXX-XXXX para fixo).

    O DDI 55 é opcional na entrada. None se não sobrar um número de
    10 ou 11 dígitos.
    """
    digits = digits_only(raw)

    if digits.startswith("55") and len(digits) > 11:
        digits = digits[2:]

    if len(digits) not in (10, 11):
        return None

    ddd, number = digits[:2], digits[2:]
    return f"+55 {ddd} {number[:-4]}-{number[-4:]}"


def normalize_state(raw: Optional[str]) -> Optional[str]:
    """
    Converte "pr", "Paraná" ou "PARANA" em "PR".
    """
    text = strip_accents((raw or "").strip()).upper()
    if not text:
        return None
    if text in UFS:
        return text
    return STATE_NAMES.get(text)


def normalize_birth_date(raw) -> Optional[date]:
    """
    Aceita date, "1990-05-15" ou "15/05/1990". Datas futuras são inválidas.
    """
    if isinstance(raw, datetime):
        parsed = raw.date()
    elif isinstance(raw, date):
        parsed = raw
    else:
        text = (raw or "").strip()
        parsed = None
        for fmt in BIRTH_DATE_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt).date()
                break
            except ValueError:
                continue
        if parsed is None:
            return None

    if parsed > date.today():
        return None
    return parsed


def is_valid_email(email: Optional[str]) -> bool:
    """
    Validação simples de e-mail.
    """
    email = (email or "").strip()
    return "@" in email and "." in email.split("@")[1]


def mask_cpf(cpf: Optional[str]) -> str:
    """CPF seguro para log: "12345678901" -> "123.***.***-01"."""
    digits = digits_only(cpf)
    if len(digits) != 11:
        return "***"
    return f"{digits[:3]}.***.***-{digits[-2:]}"
