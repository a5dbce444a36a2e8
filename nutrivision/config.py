from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    gemini_api_key: str = ""  # Falls back to GEMINI_API_KEY / GOOGLE_API_KEY lookup in the SDK

    analysis_model: str = "gemini-3-pro-preview"
    image_model: str = "gemini-3-pro-image-preview"

    # Idealized image rendering
    image_aspect_ratio: str = "1:1"
    image_size: str = "1K"

    # Gemini request timeout (seconds)
    gemini_timeout: int = 120

    class Config:
        env_file = ".env"


settings = Settings()
