from pydantic import BaseModel, Field


class HealthStatus(BaseModel):
    """Health of a service and of the components it depends on."""

    healthy: bool
    detail: str = "ok"
    components: dict[str, bool] = Field(default_factory=dict)

    @classmethod
    def from_components(cls, components: dict[str, bool]) -> "HealthStatus":
        failing = sorted(name for name, ok in components.items() if not ok)
        if not failing:
            return cls(healthy=True, components=components)
        return cls(healthy=False, detail="unhealthy: " + ", ".join(failing), components=components)

    @classmethod
    def combine(cls, *statuses: "HealthStatus") -> "HealthStatus":
        components: dict[str, bool] = {}
        for status in statuses:
            components.update(status.components)
        return cls.from_components(components)
