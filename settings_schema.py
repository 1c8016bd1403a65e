from pydantic import BaseModel, Field, ValidationError


class SettingsSchema(BaseModel):
    app_url: str = "http://localhost:8000"
    share_token_days: int = Field(7, ge=1)
    session_hours: int = Field(720, ge=1)
    auth_enabled: bool = True
    log_level: str = "INFO"
    default_plan_name: str = "Weekly Grind"
    password_pepper: str = ""


def validate_settings(data: dict) -> None:
    try:
        SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
