"""
Configuration loader for the sales agent.

Runtime settings come from environment variables (optionally from a `.env`
file); the product catalogue seed comes from a YAML file.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_PRODUCTS_FILE = Path(__file__).parent.parent.parent / "config" / "products.yml"


class AgentConfig(BaseModel):
    """Persona and business constants used in prompts and messages"""

    insurer_name: str = "Ishimwe Insurance"
    agent_name: str = "Aida"
    currency: str = "RWF"


class GenerationConfig(BaseModel):
    model: str = "gemini-2.5-flash"
    api_key_env: str = "GEMINI_API_KEY"
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    max_attempts: int = Field(default=3, ge=1, le=10)


class WhatsAppConfig(BaseModel):
    api_base_url: str = "https://graph.facebook.com/v19.0"
    phone_number_id: str = ""
    token: str = ""
    verify_token: str = ""


class PaymentsConfig(BaseModel):
    secret_key: str = ""
    webhook_secret: str = ""
    currency: str = "rwf"
    product_name: str = "Insurance Policy"
    success_url: str = "https://example.com/payment-success?session_id={CHECKOUT_SESSION_ID}"
    cancel_url: str = "https://example.com/payment-cancelled"
    signature_tolerance_seconds: int = Field(default=300, ge=0)


class DocumentsConfig(BaseModel):
    pdf_api_url: str = "https://api.pdf.co/v1/pdf/convert/from/html"
    pdf_api_key: str = ""
    cloudinary_cloud_name: str = ""
    cloudinary_api_key: str = ""
    cloudinary_api_secret: str = ""
    storage_folder: str = "certificates"


class Settings(BaseModel):
    integrations_mode: Literal["mock", "real"] = "mock"
    database_url: Optional[str] = None
    redis_url: Optional[str] = None
    api_keys: List[str] = Field(default_factory=list)
    products_file: Path = DEFAULT_PRODUCTS_FILE
    agent: AgentConfig = Field(default_factory=AgentConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    whatsapp: WhatsAppConfig = Field(default_factory=WhatsAppConfig)
    payments: PaymentsConfig = Field(default_factory=PaymentsConfig)
    documents: DocumentsConfig = Field(default_factory=DocumentsConfig)

    @property
    def use_real_integrations(self) -> bool:
        return self.integrations_mode == "real"


class RequiredInputSeed(BaseModel):
    key: str
    question: str
    type: Literal["number", "string", "boolean"] = "string"
    required: bool = True


class ProductSeed(BaseModel):
    type: str
    name: str
    is_active: bool = True
    keywords: List[str] = Field(default_factory=list)
    required_inputs: List[RequiredInputSeed] = Field(default_factory=list)
    pricing_rules: Dict[str, Any]


class ProductSeedFile(BaseModel):
    products: List[ProductSeed]


def _resolve_integrations_mode() -> str:
    mode = os.getenv("INTEGRATIONS_MODE", "").strip().lower()
    if mode in {"real", "live"}:
        return "real"
    if mode in {"mock", "test"}:
        return "mock"
    has_credentials = bool(
        os.getenv("GEMINI_API_KEY") and os.getenv("WHATSAPP_TOKEN") and os.getenv("STRIPE_SECRET_KEY")
    )
    return "real" if has_credentials else "mock"


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """
    Build Settings from the process environment.

    Args:
        env_file: Optional .env file. Defaults to python-dotenv's discovery.

    Raises:
        ValidationError: If a value does not match the schema
    """
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    data: Dict[str, Any] = {
        "integrations_mode": _resolve_integrations_mode(),
        "database_url": os.getenv("DATABASE_URL") or None,
        "redis_url": os.getenv("REDIS_URL") or None,
        "api_keys": [k.strip() for k in os.getenv("API_KEYS", "").split(",") if k.strip()],
        "agent": {
            "insurer_name": os.getenv("INSURER_NAME", AgentConfig().insurer_name),
            "agent_name": os.getenv("AGENT_NAME", AgentConfig().agent_name),
            "currency": os.getenv("CURRENCY", AgentConfig().currency),
        },
        "generation": {
            "model": os.getenv("GEMINI_MODEL", GenerationConfig().model),
        },
        "whatsapp": {
            "phone_number_id": os.getenv("WHATSAPP_PHONE_NUMBER_ID", ""),
            "token": os.getenv("WHATSAPP_TOKEN", ""),
            "verify_token": os.getenv("WHATSAPP_VERIFY_TOKEN", ""),
        },
        "payments": {
            "secret_key": os.getenv("STRIPE_SECRET_KEY", ""),
            "webhook_secret": os.getenv("STRIPE_WEBHOOK_SECRET", ""),
            "currency": os.getenv("CURRENCY", AgentConfig().currency).lower(),
        },
        "documents": {
            "pdf_api_key": os.getenv("PDF_CO_API_KEY", ""),
            "cloudinary_cloud_name": os.getenv("CLOUDINARY_CLOUD_NAME", ""),
            "cloudinary_api_key": os.getenv("CLOUDINARY_API_KEY", ""),
            "cloudinary_api_secret": os.getenv("CLOUDINARY_API_SECRET", ""),
        },
    }
    if os.getenv("PRODUCTS_FILE"):
        data["products_file"] = os.environ["PRODUCTS_FILE"]
    if os.getenv("PAYMENT_SUCCESS_URL"):
        data["payments"]["success_url"] = os.environ["PAYMENT_SUCCESS_URL"]
    if os.getenv("PAYMENT_CANCEL_URL"):
        data["payments"]["cancel_url"] = os.environ["PAYMENT_CANCEL_URL"]

    try:
        settings = Settings(**data)
    except ValidationError as e:
        logger.error("Settings validation failed: %s", e)
        raise

    logger.info("Loaded settings: integrations_mode=%s database=%s", settings.integrations_mode, bool(settings.database_url))
    return settings


def load_product_seed(config_path: Optional[Path] = None) -> List[ProductSeed]:
    """
    Load and validate the product catalogue seed from YAML

    Args:
        config_path: Path to seed file. Defaults to config/products.yml

    Returns:
        Validated product seeds, in file order

    Raises:
        FileNotFoundError: If the seed file doesn't exist
        ValidationError: If the seed doesn't match the schema
        ValueError: If two active products share a type
    """
    if config_path is None:
        config_path = DEFAULT_PRODUCTS_FILE
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Product seed file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    try:
        seed = ProductSeedFile(**data)
    except ValidationError as e:
        logger.error("Product seed validation failed: %s", e)
        raise

    active_types = [p.type for p in seed.products if p.is_active]
    duplicates = {t for t in active_types if active_types.count(t) > 1}
    if duplicates:
        raise ValueError(f"Duplicate active product types in seed: {sorted(duplicates)}")

    logger.info("Loaded %d product(s) from %s", len(seed.products), config_path)
    return seed.products
