# core/errors.py
"""
Fehler-Taxonomie.

Jede Klasse trägt ein `kind`, das auch im Connector-Status und in Logs
auftaucht. Nichts davon darf über Orchestrator.respond() hinaus nach außen.
"""


class RelayError(Exception):
    kind = "RelayError"


class ConfigIncomplete(RelayError):
    """API-Key oder Region fehlt. Tools bleiben aus, der Chat läuft weiter."""
    kind = "ConfigIncomplete"


class ToolHostUnavailable(RelayError):
    """Docker-Binary, -Socket oder -Daemon nicht erreichbar."""
    kind = "ToolHostUnavailable"


class ConnectorInitFailed(RelayError):
    """Launch, Handshake oder tools/list fehlgeschlagen."""
    kind = "ConnectorInitFailed"


class NotReady(RelayError):
    """Tool-Aufruf, obwohl der Connector nicht READY ist."""
    kind = "NotReady"


class PlannerUnavailable(RelayError):
    """Modell während des Decision-Steps nicht erreichbar."""
    kind = "PlannerUnavailable"


class DecisionParseFailure(RelayError):
    """Modell-Output ohne verwertbares JSON. Wird nie geworfen, nur protokolliert."""
    kind = "DecisionParseFailure"


class InvocationError(RelayError):
    """Tool-Aufruf fehlgeschlagen oder Timeout."""
    kind = "InvocationError"

    def __init__(self, tool_name: str, reason: str):
        self.tool_name = tool_name
        self.reason = reason
        super().__init__(f"{tool_name}: {reason}")


class DirectAnswerFailed(RelayError):
    """Modell beim Fallback (Direktantwort) nicht erreichbar."""
    kind = "DirectAnswerFailed"
