"""
guardrail_detect/patterns.py - Ordered detection battery

Each PatternCheck is one row of the battery: a category, the regexes that
trigger it, and the weight it adds to the risk score. The order of
PATTERN_CHECKS is the order violations are reported in.

Matching rules:
- re.search only, never fullmatch over attacker-controlled text
- Repetition inside delimiters is bounded ({0,N}) and template/EL checks
  use Delimited spans, so no check backtracks quadratically on long inputs
"""
import re
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from .violations import Severity


# Longest run scanned inside a delimited construct ({{ ... }}, ${ ... }, <!ENTITY ... >)
_SPAN = 256

_I = re.IGNORECASE


@dataclass(frozen=True)
class PatternCheck:
    type: str
    pattern: str
    severity: Severity
    weight: int
    regexes: Tuple[Union[re.Pattern, "Delimited"], ...]
    description: str
    recommendation: str

    @property
    def key(self) -> str:
        return f"{self.type}/{self.pattern}"

    def matches(self, text: str) -> bool:
        return any(rx.search(text) for rx in self.regexes)


@dataclass(frozen=True)
class Delimited:
    """
    Keyword match confined to a delimited span such as {{ ... }}.

    Spans are found first (non-overlapping, bounded length), then the
    keyword regex runs inside each span. Equivalent to a lazy
    open.*?keyword.*?close regex without its backtracking cost.
    """
    span: re.Pattern
    inner: re.Pattern

    def search(self, text: str) -> Optional[re.Match]:
        for m in self.span.finditer(text):
            if self.inner.search(m.group(1)):
                return m
        return None


# --- Path traversal -------------------------------------------------------

PATH_TRAVERSAL_REGEXES = (
    re.compile(r"\.\.[/\\]"),
    re.compile(r"%2e%2e(%2f|%5c)", _I),
    re.compile(r"%252e%252e(%252f|%255c)", _I),
    re.compile(r"%25252e%25252e%25252f", _I),
    re.compile(r"%c0%ae%c0%ae", _I),
    re.compile(r"%c1%9c", _I),
    re.compile(r"\.\.(%252f|%252c|%2f|%5c|%c0%af)", _I),
    re.compile("[\uFF0E\u2024]\\.[\uFF0F\u2044/\\\\]"),
    re.compile("[.\uFF0E\u2024][.\uFF0E\u2024][/\uFF0F\u2044\\\\]"),
    re.compile("\\.[\u200B\uFEFF]+\\.[\u200B\uFEFF]*[/\\\\]"),
    re.compile(r"^\\\\[^\\]+\\[^\\]"),
    re.compile(r"^[a-zA-Z]:[\\/]$"),
    re.compile(r"^/[^/]"),
    re.compile(r"^~[/\\]"),
)

NULL_BYTE = re.compile("\x00")

# --- Command injection ----------------------------------------------------

SHELL_METACHARACTERS = re.compile(r"[;&|`$(){}\[\]<>]")
PATH_MANIPULATION = re.compile(r"PATH\s*=|LD_PRELOAD\s*=|BASH_ENV\s*=|ENV\s*=", _I)
IFS_BYPASS = re.compile(r"\$IFS\$|\$\{IFS\}")
ANSI_C_QUOTING = re.compile(r"\$['\"][^'\"]{0,%d}['\"]|\\\\" % _SPAN)
DANGEROUS_COMMANDS = re.compile(
    r"\b(rm|del|format|fdisk|mkfs|dd|cat|curl|wget|nc|netcat|telnet|ssh|ftp|tftp|eval|exec|system)\s",
    _I,
)

# --- Script injection -----------------------------------------------------

JAVASCRIPT_EVAL = re.compile(r"\beval\s*\(", _I)
JAVASCRIPT_FUNCTION = re.compile(r"\bFunction\s*\(", _I)
SCRIPT_TAG = re.compile(r"<script[^>]{0,%d}>[^<]{0,4096}</script>" % _SPAN, _I)
SQL_KEYWORDS = re.compile(r"\b(SELECT|INSERT|UPDATE|DELETE|DROP|CREATE|ALTER|EXEC|UNION)\b", _I)
NOSQL_OPERATORS = re.compile(r"\$where|\$regex|\$ne|\$gt|\$lt", _I)
TEMPLATE_INJECTION = re.compile(r"(\{\{[^}]{0,%d}\}\}|\$\{[^}]{0,%d}\})" % (_SPAN, _SPAN))

# --- Privilege escalation / file system -----------------------------------

SUDO_COMMAND = re.compile(r"\bsudo\s", _I)
SENSITIVE_UNIX_PATHS = re.compile(r"/(etc/passwd|etc/shadow|etc/hosts|root/|proc/|sys/|dev/)", _I)
SENSITIVE_WINDOWS_PATHS = re.compile(
    r"\\(windows\\system32|windows\\syswow64|program files|users\\[^\\]{0,%d}\\desktop)" % _SPAN,
    _I,
)
WINDOWS_DEVICE_NAMES = re.compile(r"^(CON|PRN|AUX|NUL|COM[1-9]|LPT[1-9])(?:[\s.]|$)", _I)
# A trailing run of dots/spaces exists iff the final character is one.
WINDOWS_TRAILING_CHARS = re.compile(r"[\s.]$")

# --- Unicode and object abuse ---------------------------------------------

HOMOGRAPH_CHARS = re.compile("[а-яёα-ωΑ-Ω]", _I)
HOMOGRAPH_CYRILLIC = re.compile("[а-яё]", _I)
HOMOGRAPH_GREEK = re.compile("[α-ωΑ-Ω]")
BIDI_OVERRIDE = re.compile("[\u202A-\u202E\u2066-\u2069\u061C]")
ZERO_WIDTH_CHARS = re.compile("[\u200B-\u200D\uFEFF\u2060]")
PROTOTYPE_POLLUTION = re.compile(r"__proto__|constructor\.prototype|\.prototype\.|\.constructor", _I)

# --- Deserialization / XML ------------------------------------------------

JAVA_SERIALIZED = re.compile("\xac\xed\x00\x05|rO0AB")
PYTHON_PICKLE = re.compile("\x80[\x02-\x04]|c__builtin__|cos\nsystem")
PHP_SERIALIZED = re.compile(r"[Oo]:[0-9]+:\"")
DANGEROUS_CLASSES = re.compile(
    r"\b(eval|exec|system|shell_exec|file_get_contents|fopen|include|require)\b", _I
)
XXE_EXTERNAL_ENTITY = re.compile(r"<!ENTITY[^>]{1,%d}SYSTEM[^>]{1,%d}>" % (_SPAN, _SPAN), _I)
XXE_EXTERNAL_DOCTYPE = re.compile(r"<!DOCTYPE[^>]{1,%d}SYSTEM[^>]{0,%d}>" % (_SPAN, _SPAN), _I)
XML_BOMB = re.compile(r"&lol[0-9]*;|&lol[0-9]*lol[0-9]*;", _I)

# --- Template / expression language ---------------------------------------

MUSTACHE_SPAN = re.compile(r"\{\{([^}]{0,%d})\}\}" % _SPAN)
DOLLAR_SPAN = re.compile(r"\$\{([^}]{0,%d})\}" % _SPAN)
HASH_SPAN = re.compile(r"#\{([^}]{0,%d})\}" % _SPAN)
PERCENT_SPAN = re.compile(r"%%\{([^}]{0,%d})\}" % _SPAN)

JINJA2_INJECTION = Delimited(MUSTACHE_SPAN, re.compile(r"\.|_|config|request|session|g", _I))
JINJA2_DANGEROUS = Delimited(MUSTACHE_SPAN, re.compile(r"popen|system|eval|exec|import|builtins|globals", _I))
TWIG_DANGEROUS = Delimited(MUSTACHE_SPAN, re.compile(r"system|exec|shell_exec|passthru", _I))
FREEMARKER_DANGEROUS = Delimited(
    DOLLAR_SPAN, re.compile(r"freemarker\.template\.utility\.Execute|ObjectConstructor", _I)
)
TEMPLATE_EXECUTION = Delimited(MUSTACHE_SPAN, re.compile(r"eval|exec|system|import|require|constructor", _I))
TEMPLATE_OBJECT_ACCESS = Delimited(MUSTACHE_SPAN, re.compile(r"__.*?__|prototype|constructor|process", _I))

EL_DOLLAR = Delimited(DOLLAR_SPAN, re.compile(r"Runtime|ProcessBuilder|System|Class|Method", _I))
EL_SPRING = Delimited(HASH_SPAN, re.compile(r"T\(|new |Runtime|ProcessBuilder|System\.getProperty", _I))
EL_OGNL = Delimited(PERCENT_SPAN, re.compile(r"Runtime|ProcessBuilder|System|@java\.lang", _I))
EL_EXECUTION = Delimited(DOLLAR_SPAN, re.compile(r"Runtime\.getRuntime\(\)|ProcessBuilder|System\.exit", _I))
EL_REFLECTION = Delimited(DOLLAR_SPAN, re.compile(r"Class\.forName|getClass\(\)|getDeclaredMethod", _I))

# --- LDAP / XPath / CSV ---------------------------------------------------

LDAP_FILTER_CHARS = re.compile(r"[()&|!*\\]")
LDAP_ATTRIBUTES = re.compile(r"\b(objectClass|cn|uid|userPassword|memberOf|dn)\s*=", _I)
XPATH_QUOTE_OR = re.compile(r"['\"]\s*or\s*['\"]", _I)
XPATH_BOOLEAN = re.compile(r"\b(and|or)\s+['\"]", _I)
XPATH_FUNCTIONS = re.compile(
    r"\b(substring|contains|starts-with|string-length|position|last|count)\s*\(", _I
)
CSV_FORMULA = re.compile(r"^\s*[=+\-@]")
CSV_FUNCTIONS = re.compile(r"\b(HYPERLINK|IMPORTXML|WEBSERVICE|INDIRECT|OFFSET)\s*\(", _I)
CSV_DDE = re.compile(r"=[^|\n]{0,%d}\|[^!\n]{0,%d}!" % (_SPAN, _SPAN))

SAFE_PROJECT_NAME = re.compile(
    r"^[a-zA-Z0-9\-_.àáâãäåæçèéêëìíîïñòóôõöøùúûüýÿÀÁÂÃÄÅÆÇÈÉÊËÌÍÎÏÑÒÓÔÕÖØÙÚÛÜÝŸ]+\Z"
)


PATTERN_CHECKS: Tuple[PatternCheck, ...] = (
    PatternCheck(
        "path-traversal", "directory-traversal", Severity.CRITICAL, 40,
        PATH_TRAVERSAL_REGEXES,
        "Directory traversal attempt detected (including Unicode variants)",
        "Use relative paths within project directory only",
    ),
    PatternCheck(
        "command-injection", "shell-metacharacters", Severity.HIGH, 30,
        (SHELL_METACHARACTERS,),
        "Shell metacharacters detected",
        "Remove or escape shell special characters",
    ),
    PatternCheck(
        "command-injection", "advanced-injection", Severity.CRITICAL, 45,
        (PATH_MANIPULATION, IFS_BYPASS, ANSI_C_QUOTING),
        "Advanced command injection attempt detected",
        "Use parameterized commands and avoid environment variable manipulation",
    ),
    PatternCheck(
        "command-injection", "dangerous-commands", Severity.CRITICAL, 40,
        (DANGEROUS_COMMANDS,),
        "Dangerous command detected",
        "Use safe alternatives or whitelist trusted commands",
    ),
    PatternCheck(
        "script-injection", "eval-usage", Severity.CRITICAL, 50,
        (JAVASCRIPT_EVAL,),
        "Eval function usage detected",
        "Never use eval() with user input",
    ),
    PatternCheck(
        "privilege-escalation", "sudo-command", Severity.HIGH, 35,
        (SUDO_COMMAND,),
        "Privilege escalation attempt detected",
        "Run with appropriate user permissions",
    ),
    PatternCheck(
        "file-system", "sensitive-file-access", Severity.CRITICAL, 45,
        (SENSITIVE_UNIX_PATHS, SENSITIVE_WINDOWS_PATHS),
        "Access to sensitive system files detected",
        "Restrict access to application directories only",
    ),
    PatternCheck(
        "file-system", "windows-device-names", Severity.MEDIUM, 20,
        (WINDOWS_DEVICE_NAMES,),
        "Windows reserved device name detected",
        "Avoid using Windows reserved names (CON, PRN, AUX, etc.)",
    ),
    PatternCheck(
        "file-system", "windows-filename-edge-cases", Severity.LOW, 10,
        (WINDOWS_TRAILING_CHARS,),
        "Windows filename edge case detected (trailing dots/spaces)",
        "Remove trailing dots and spaces from filenames",
    ),
    PatternCheck(
        "advanced-attack", "homograph-attack", Severity.HIGH, 35,
        (HOMOGRAPH_CHARS,),
        "Homograph attack using non-Latin characters detected",
        "Use only Latin characters for identifiers",
    ),
    PatternCheck(
        "advanced-attack", "bidirectional-text", Severity.HIGH, 35,
        (BIDI_OVERRIDE,),
        "Bidirectional text override attack detected",
        "Remove bidirectional control characters",
    ),
    PatternCheck(
        "advanced-attack", "prototype-pollution", Severity.HIGH, 35,
        (PROTOTYPE_POLLUTION,),
        "Prototype pollution attempt detected",
        "Avoid accessing object prototype properties",
    ),
    PatternCheck(
        "deserialization", "unsafe-deserialization", Severity.CRITICAL, 45,
        (JAVA_SERIALIZED, PYTHON_PICKLE, PHP_SERIALIZED),
        "Unsafe deserialization pattern detected",
        "Use safe deserialization libraries with type validation",
    ),
    PatternCheck(
        "deserialization", "dangerous-classes", Severity.CRITICAL, 40,
        (DANGEROUS_CLASSES,),
        "Dangerous class references for deserialization detected",
        "Avoid deserializing untrusted data with dangerous classes",
    ),
    PatternCheck(
        "xxe", "external-entity", Severity.HIGH, 35,
        (XXE_EXTERNAL_ENTITY, XXE_EXTERNAL_DOCTYPE),
        "XML External Entity (XXE) attack detected",
        "Disable external entity processing in XML parsers",
    ),
    PatternCheck(
        "xxe", "xml-bomb", Severity.HIGH, 30,
        (XML_BOMB,),
        "XML bomb (billion laughs) attack detected",
        "Implement XML parsing limits and disable entity expansion",
    ),
    PatternCheck(
        "ssti", "dangerous-template-injection", Severity.CRITICAL, 40,
        (JINJA2_INJECTION, JINJA2_DANGEROUS, TWIG_DANGEROUS, FREEMARKER_DANGEROUS),
        "Dangerous server-side template injection detected",
        "Use template sandboxing and avoid dangerous functions",
    ),
    PatternCheck(
        "ssti", "template-execution", Severity.HIGH, 35,
        (TEMPLATE_EXECUTION, TEMPLATE_OBJECT_ACCESS),
        "Template execution or object access injection detected",
        "Sanitize template inputs and restrict object access",
    ),
    PatternCheck(
        "ldap-injection", "ldap-filter-injection", Severity.HIGH, 30,
        (LDAP_FILTER_CHARS,),
        "LDAP filter injection attempt detected",
        "Escape LDAP special characters and use parameterized queries",
    ),
    PatternCheck(
        "ldap-injection", "ldap-attribute-injection", Severity.MEDIUM, 25,
        (LDAP_ATTRIBUTES,),
        "LDAP attribute injection attempt detected",
        "Validate LDAP attribute names and values",
    ),
    PatternCheck(
        "xpath-injection", "xpath-injection", Severity.HIGH, 30,
        (XPATH_QUOTE_OR, XPATH_BOOLEAN),
        "XPath injection attempt detected",
        "Use parameterized XPath queries and escape special characters",
    ),
    PatternCheck(
        "xpath-injection", "xpath-function-abuse", Severity.MEDIUM, 20,
        (XPATH_FUNCTIONS,),
        "Suspicious XPath function usage detected",
        "Validate XPath function usage and parameters",
    ),
    PatternCheck(
        "expression-injection", "dangerous-el-injection", Severity.CRITICAL, 40,
        (EL_DOLLAR, EL_SPRING, EL_OGNL),
        "Dangerous Expression Language injection detected",
        "Avoid EL evaluation with untrusted input and use safe evaluation contexts",
    ),
    PatternCheck(
        "expression-injection", "el-execution", Severity.CRITICAL, 35,
        (EL_EXECUTION, EL_REFLECTION),
        "Expression Language execution or reflection detected",
        "Disable dangerous EL functions and reflection access",
    ),
    PatternCheck(
        "csv-injection", "formula-injection", Severity.MEDIUM, 25,
        (CSV_FORMULA,),
        "CSV formula injection attempt detected",
        "Escape formula characters in CSV exports",
    ),
    PatternCheck(
        "csv-injection", "dangerous-csv-functions", Severity.HIGH, 30,
        (CSV_FUNCTIONS, CSV_DDE),
        "Dangerous CSV functions or DDE injection detected",
        "Block dangerous functions and DDE commands in CSV exports",
    ),
)

DEFAULT_WEIGHTS = {check.key: check.weight for check in PATTERN_CHECKS}
