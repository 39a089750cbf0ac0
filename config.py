from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # API
    app_title: str = "OPD Token Allocation Engine"
    allow_admin_reset: bool = True   # Exposes POST /admin/reset

    # Engine
    default_slot_capacity: int = 5   # Used when a slot request omits capacity
    token_id_prefix: str = "T"       # Token ids render as T001, T002, ...

    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


settings = Settings()
