from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Gemini (required before any research run)
    gemini_api_key: str = ""

    # Model fallback order tried after the preferred model of a task
    model_fallback_chain: str = "gemini-2.0-flash-exp,gemini-2.0-flash,gemini-1.5-flash,gemini-1.5-pro"

    # Research pipeline
    research_batch_size: int = 3
    response_cache_ttl_seconds: int = 3600

    # Research prompt generator
    prompt_generator_models: str = "gemini-2.0-flash-exp,gemini-1.5-flash,gemini-1.5-pro"
    prompt_generator_max_retries: int = 3
    prompt_generator_retry_delay_s: float = 1.0

    # Case / prompt history
    history_path: str = ".data/research_history.json"

    # App
    cors_origins: str = "http://localhost:3000"
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_dir: str = "logs"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",")]

    @property
    def model_fallback_list(self) -> list[str]:
        return [m.strip() for m in self.model_fallback_chain.split(",") if m.strip()]

    @property
    def prompt_generator_model_list(self) -> list[str]:
        return [m.strip() for m in self.prompt_generator_models.split(",") if m.strip()]


settings = Settings()
