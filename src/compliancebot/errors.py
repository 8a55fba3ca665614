from __future__ import annotations


class ComplianceError(Exception):
    pass


class ConfigError(ComplianceError):
    pass


class MalformedEvent(ComplianceError):
    pass


class AuthError(ComplianceError):
    installation_id: int

    def __init__(self, *args, installation_id: int):
        self.installation_id = installation_id
        super().__init__(*args)


class CreateError(ComplianceError):
    pass


class FinalizeError(ComplianceError):
    pass


class CommentError(ComplianceError):
    pass


class CheckRunStateError(ComplianceError):
    pass


class RuleExecutionError(ComplianceError):
    rule_name: str

    def __init__(self, *args, rule_name: str):
        self.rule_name = rule_name
        super().__init__(*args)
