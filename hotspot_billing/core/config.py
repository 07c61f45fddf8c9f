from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
	model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

	APP_NAME: str = Field(default="Hotspot Billing API")
	DEBUG: bool = Field(default=False)
	LOG_LEVEL: str = Field(default="INFO")
	API_PREFIX: str = Field(default="")

	# Database
	DATABASE_URL: str = Field(default="")

	# Captive portal page (served from / when the directory exists)
	STATIC_DIR: str = Field(default="public")

	# MikroTik RouterOS API
	MIKROTIK_HOST: str = Field(default="192.168.88.1")
	MIKROTIK_USER: str = Field(default="admin")
	MIKROTIK_PASS: str = Field(default="")
	MIKROTIK_PORT: int = Field(default=8728)
	MIKROTIK_SSL: bool = Field(default=False)
	# seconds
	MIKROTIK_TIMEOUT: float = Field(default=20.0)

	# M-Pesa Daraja
	MPESA_ENV: str = Field(default="sandbox")
	MPESA_CONSUMER_KEY: str = Field(default="")
	MPESA_CONSUMER_SECRET: str = Field(default="")
	MPESA_SHORTCODE: str = Field(default="")
	MPESA_PASSKEY: str = Field(default="")
	MPESA_CALLBACK_URL: str = Field(default="")
	MPESA_ACCOUNT_REFERENCE: str = Field(default="ClanWiFi")
	MPESA_TRANSACTION_DESC: str = Field(default="WiFi Purchase")
	MPESA_TIMEOUT: float = Field(default=30.0)

	# Background jobs
	SCHEDULER_ENABLED: bool = Field(default=True)
	PLAN_SYNC_INTERVAL_SECONDS: int = Field(default=600)
	PROVISIONING_RETRY_INTERVAL_SECONDS: int = Field(default=60)
	PROVISIONING_RETRY_BATCH: int = Field(default=20)
	PROVISIONING_MAX_ATTEMPTS: int = Field(default=10)


settings = Settings()
