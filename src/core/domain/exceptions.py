class MissingParameter(Exception):
    """Raised when a framework rule references a parameter the dilemma does not define."""
    pass

class DegenerateComparison(Exception):
    """Raised when both sides of a framework comparison are zero."""
    pass

class UnknownFramework(ValueError):
    """Raised when an evaluation is requested for an unsupported framework."""
    pass

class ResolutionFailure(Exception):
    """Raised when a resolution strategy cannot produce a resolution for a conflict."""

    def __init__(self, conflict_id: str, strategy: str, cause: Exception):
        super().__init__(f"Strategy {strategy} failed for conflict {conflict_id}: {cause}")
        self.conflict_id = conflict_id
        self.strategy = strategy
        self.cause = cause

class ValidationFailure(Exception):
    """Raised when a dilemma has critical schema violations and cannot be evaluated."""

    def __init__(self, issues):
        super().__init__("; ".join(issues) if issues else "Dilemma validation failed")
        self.issues = list(issues)

class PrecedentLookupError(Exception):
    """Raised when a precedent source cannot answer a similarity query."""
    pass
