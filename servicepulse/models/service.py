"""Service registry entry model."""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ServiceDescriptor(BaseModel):
    """A registered service and how to reach its health endpoint.

    ``command``, ``args`` and ``env`` describe how the service is launched.
    The reporter never runs them; only the joined command line appears in
    the report. Scalar ``env`` values are stored as strings.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    name: str = Field(min_length=1)
    command: str = ""
    args: tuple[str, ...] = ()
    port: int | None = Field(default=None, ge=1, le=65535)
    health_path: str = Field(default="/health", alias="healthPath")
    env: dict[str, str] = Field(default_factory=dict)

    @field_validator("env", mode="before")
    @classmethod
    def _stringify_env(cls, value):
        # YAML turns `PORT: 3000` into an int
        if isinstance(value, dict):
            return {k: str(v) if isinstance(v, int | float) else v for k, v in value.items()}
        return value

    @field_validator("health_path")
    @classmethod
    def _check_health_path(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError(f"health path must start with '/', got {value!r}")
        return value

    def health_url(self, default_port: int) -> str:
        """Build the probe URL for this service.

        Args:
            default_port: Port used when the registry entry has none

        Returns:
            ``http://localhost:{port}{health_path}``
        """
        port = self.port if self.port is not None else default_port
        return f"http://localhost:{port}{self.health_path}"

    @property
    def command_line(self) -> str:
        """Launch command joined with its arguments."""
        return " ".join([self.command, *self.args]).strip()
