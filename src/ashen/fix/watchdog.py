"""Module watchdog: reconcile the static module registry against live errors."""

from __future__ import annotations

from dataclasses import dataclass, field

from ashen.core.models import ErrorRecord, ErrorStatus, Severity

DEFAULT_BUCKET = "Core"


@dataclass(frozen=True)
class ModuleSpec:
    """A known feature module of the monitored application."""

    name: str
    source_path: str = ""
    routes: tuple[str, ...] = ()
    components: tuple[str, ...] = ()
    priority: str = "medium"
    category: str = "page"

    @property
    def needles(self) -> list[str]:
        """Lower-cased substrings that attribute an error path to this module."""
        values = [self.name.replace(" ", ""), self.source_path, *self.components]
        return [v.lower() for v in values if v]


@dataclass
class ModuleReport:
    module: ModuleSpec
    errors: list[ErrorRecord] = field(default_factory=list)

    @property
    def open_errors(self) -> list[ErrorRecord]:
        return [e for e in self.errors if e.status is ErrorStatus.OPEN]

    @property
    def issues(self) -> list[str]:
        return [f"{e.error_type}: {e.error_message}" for e in self.open_errors]

    @property
    def status(self) -> str:
        open_errors = self.open_errors
        if not open_errors:
            return "healthy"
        if any(e.severity in (Severity.HIGH, Severity.CRITICAL) for e in open_errors):
            return "broken"
        return "degraded"


MODULE_REGISTRY: tuple[ModuleSpec, ...] = (
    ModuleSpec("Homepage", "src/pages/Index", ("/",), (), "critical"),
    ModuleSpec("Authentication", "src/pages/Auth", ("/auth",), ("Auth", "Login"), "critical"),
    ModuleSpec("Admin Panel", "src/components/Admin", ("/admin",), ("Admin",), "critical"),
    ModuleSpec("Pulse Feed", "src/pages/PulseFeed", ("/pulse",), ("PulseFeed",), "high"),
    ModuleSpec("Politicians", "src/components/Politicians", ("/politicians",), ("Politicians", "PoliticianDetailModal"), "high"),
    ModuleSpec("Political Parties", "src/pages/PoliticalParties", ("/political-parties",), ("PoliticalParties",), "high"),
    ModuleSpec("Marketplace", "src/components/Marketplace", ("/marketplace",), ("Marketplace",), "medium"),
    ModuleSpec("Tenders", "src/components/Tenders", ("/tenders",), ("CreateTender", "Tenders"), "medium"),
    ModuleSpec("Polls", "src/components/Polls", ("/polls",), ("Polls",), "medium"),
    ModuleSpec("Promises", "src/pages/Promises", ("/promises",), ("Promises",), "medium"),
    ModuleSpec("Security Center", "src/components/Security", ("/security",), ("Security",), "high"),
    ModuleSpec("Civic Portal", "src/components/AI", ("/civic-portal",), ("CivicPublicPortal", "CivicImportCore"), "high"),
    ModuleSpec("Messaging", "src/components/Messaging", (), ("RealTimeMessaging",), "medium", "component"),
    ModuleSpec("Mobile Navigation", "", (), ("MobileNavigation",), "high", "component"),
)


def match_module(record: ErrorRecord, registry: tuple[ModuleSpec, ...] = MODULE_REGISTRY) -> ModuleSpec | None:
    path = record.component_path.lower()
    for spec in registry:
        if any(needle in path for needle in spec.needles):
            return spec
    return None


def reconcile(
    records: list[ErrorRecord],
    registry: tuple[ModuleSpec, ...] = MODULE_REGISTRY,
) -> list[ModuleReport]:
    """Attribute each record to the first matching module.

    Returns one report per registry module, in registry order, followed by
    the default bucket for records no module claims.
    """
    reports = {spec.name: ModuleReport(spec) for spec in registry}
    fallback = ModuleReport(ModuleSpec(DEFAULT_BUCKET, category="default", priority="low"))
    for record in records:
        spec = match_module(record, registry)
        (reports[spec.name] if spec else fallback).errors.append(record)
    return [*reports.values(), fallback]
