"""Common enumerations used across apiprobe configuration."""

from enum import Enum


class OWASPApiCategory(str, Enum):
    """OWASP API Security Top 10 2023 categories for finding classification."""

    API1_BOLA = "API1:2023"
    API2_BROKEN_AUTHENTICATION = "API2:2023"
    API3_BROKEN_PROPERTY_AUTHORIZATION = "API3:2023"
    API4_RESOURCE_CONSUMPTION = "API4:2023"
    API5_BROKEN_FUNCTION_AUTHORIZATION = "API5:2023"
    API6_SENSITIVE_BUSINESS_FLOWS = "API6:2023"
    API7_SSRF = "API7:2023"
    API8_SECURITY_MISCONFIGURATION = "API8:2023"
    API9_INVENTORY_MANAGEMENT = "API9:2023"
    API10_UNSAFE_CONSUMPTION = "API10:2023"


class SeverityLevel(str, Enum):
    """Impact level of a vulnerability finding."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"

    @property
    def rank(self) -> int:
        """Ordinal rank, higher is more severe."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    SeverityLevel.CRITICAL: 4,
    SeverityLevel.HIGH: 3,
    SeverityLevel.MEDIUM: 2,
    SeverityLevel.LOW: 1,
    SeverityLevel.INFO: 0,
}


class AuthType(str, Enum):
    """Authentication variants a caller can supply."""

    NONE = "none"
    BEARER = "bearer"
    BASIC = "basic"
    API_KEY = "apiKey"
    OAUTH = "oauth"


class ApiKeyLocation(str, Enum):
    HEADER = "header"
    QUERY = "query"


class ParameterLocation(str, Enum):
    PATH = "path"
    QUERY = "query"
    BODY = "body"
    HEADER = "header"


class PayloadCategory(str, Enum):
    """Fuzzing payload categories."""

    INJECTION = "injection"
    XSS = "xss"
    TRAVERSAL = "traversal"
    COMMAND = "command"
    XXE = "xxe"
    FORMAT_STRING = "format-string"


class FindingCategory(str, Enum):
    AUTH = "auth"
    DATA_EXPOSURE = "data-exposure"
    BUSINESS_LOGIC = "business-logic"
    INJECTION = "injection"
    CONFIG = "config"
    RATE_LIMITING = "rate-limiting"


class FindingType(str, Enum):
    """Every vulnerability class the probes can report."""

    BROKEN_AUTH = "BROKEN_AUTH"
    PRIVILEGE_ESCALATION = "PRIVILEGE_ESCALATION"
    BOLA = "BOLA"
    API_KEY_INSECURE = "API_KEY_INSECURE"
    API_KEY_WEAK = "API_KEY_WEAK"
    API_KEY_PREDICTABLE = "API_KEY_PREDICTABLE"
    JWT_INVALID = "JWT_INVALID"
    JWT_NONE_ALGORITHM = "JWT_NONE_ALGORITHM"
    JWT_WEAK_SECRET = "JWT_WEAK_SECRET"
    JWT_EXPIRED = "JWT_EXPIRED"
    JWT_SENSITIVE_DATA_EXPOSURE = "JWT_SENSITIVE_DATA_EXPOSURE"
    JWT_SIGNATURE_BYPASS = "JWT_SIGNATURE_BYPASS"
    SQL_INJECTION = "SQL_INJECTION"
    XSS = "XSS"
    PATH_TRAVERSAL = "PATH_TRAVERSAL"
    COMMAND_INJECTION = "COMMAND_INJECTION"
    XXE = "XXE"
    FORMAT_STRING = "FORMAT_STRING"
    CORS_MISCONFIGURATION = "CORS_MISCONFIGURATION"
    NO_RATE_LIMITING = "NO_RATE_LIMITING"
    SECURITY_MISCONFIG = "SECURITY_MISCONFIG"
    VERBOSE_ERROR = "VERBOSE_ERROR"
    MASS_ASSIGNMENT = "MASS_ASSIGNMENT"
    MALFORMED_RESPONSE = "MALFORMED_RESPONSE"
    SSRF = "SSRF"
