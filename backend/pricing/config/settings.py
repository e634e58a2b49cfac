import os
from decimal import Decimal
from typing import List, Dict, Optional
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Cargar variables de entorno desde el archivo .env
load_dotenv(encoding="utf-8")

class Settings(BaseSettings):
    # App
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_JSON: bool = os.getenv("LOG_JSON", "false").lower() in ("1", "true", "yes")

    # Monedas
    LOCAL_CURRENCY: str = os.getenv("LOCAL_CURRENCY", "VES")
    REFERENCE_CURRENCY: str = os.getenv("REFERENCE_CURRENCY", "USD")
    MONEY_DECIMAL_PLACES: int = int(os.getenv("MONEY_DECIMAL_PLACES", 2))

    # IVA (SENIAT)
    IVA_GENERAL_RATE: Decimal = Decimal(os.getenv("IVA_GENERAL_RATE", "16"))
    # 01=General, 02=Reducida, 03=Adicional (lujo), 06=Percibido, EX=Exento
    TAX_CODE_RATES: Dict[str, Decimal] = {
        "01": Decimal("16"),
        "02": Decimal("8"),
        "03": Decimal("31"),
        "06": Decimal("0"),
        "EX": Decimal("0"),
    }
    # Sin valor => códigos desconocidos lanzan InvalidTaxCode
    DEFAULT_TAX_RATE: Optional[Decimal] = None

    # IGTF
    IGTF_RATE: Decimal = Decimal(os.getenv("IGTF_RATE", "3"))
    IGTF_EXEMPT_PAYMENT_METHODS: List[str] = ["efectivo"]
    # Vacío => aplica a todo método que no esté exento
    IGTF_APPLICABLE_PAYMENT_METHODS: List[str] = []
    IGTF_MIN_AMOUNT: Decimal = Decimal(os.getenv("IGTF_MIN_AMOUNT", "0"))

    # Descuentos: "before_tax" | "after_tax"
    DISCOUNT_POLICY: str = os.getenv("DISCOUNT_POLICY", "before_tax")

    # Facturación
    DEFAULT_CREDIT_DAYS: int = int(os.getenv("DEFAULT_CREDIT_DAYS", 30))

    # API de tasas de cambio (BCV)
    RATES_API_URL: str = os.getenv("RATES_API_URL", "http://localhost:8000/api/v1")
    RATES_API_TOKEN: str = os.getenv("RATES_API_TOKEN", "")
    RATE_CACHE_TTL_MINUTES: int = int(os.getenv("RATE_CACHE_TTL_MINUTES", 30))

    model_config = {
        "env_file": ".env",
        "extra": "ignore"  # Ignorar campos adicionales en lugar de lanzar un error
    }

settings = Settings()
