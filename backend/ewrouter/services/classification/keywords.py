"""
Keyword signal tables for fast-path classification.

Hand-authored and fixed. Every signal is either strong (specific vocabulary of
one area) or weak (generic vocabulary that only hints at an area).

Systems:
- DB: database design (domains A-F)
- BE: backend engineering (clusters S/B/R/T)
- IF: infrastructure
- SE: security (clusters A/Z/E/N/C/V)
"""
import re
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

STRONG_WEIGHT = 0.8
WEAK_WEIGHT = 0.4

SYSTEM_IDS = ("DB", "BE", "IF", "SE")

# ---------------------------------------------------------------------------
# DB domains
# ---------------------------------------------------------------------------

DB_DOMAIN_KEYWORDS = {
    # A: storage engines
    "A": {
        "strong": [
            "storage engine", "innodb", "myisam", "rocksdb", "lsm", "b-tree",
            "write amplification", "compaction", "sstable", "memtable", "wiredtiger",
        ],
        "weak": ["indexed", "indexing", "reindex", "paging", "pagination"],
    },
    # B: indexing & query planning
    "B": {
        "strong": [
            "b+tree", "hash index", "gin", "gist", "brin", "covering index",
            "composite index", "query plan", "table scan", "index scan",
            "join optimization", "nested loop", "hash join", "merge join",
        ],
        "weak": ["index", "explain"],
    },
    # C: transactions & concurrency control
    "C": {
        "strong": [
            "isolation", "read committed", "repeatable read", "serializable",
            "snapshot isolation", "mvcc", "multiversion", "deadlock",
            "two-phase lock", "gap lock",
        ],
        "weak": ["lock", "locking", "optimistic", "pessimistic"],
    },
    # D: data modeling
    "D": {
        "strong": [
            "normalization", "1nf", "2nf", "3nf", "bcnf", "denormalization",
            "schema design", "document model",
        ],
        "weak": ["schema", "embedding", "referencing", "access pattern"],
    },
    # E: I/O & buffer management
    "E": {
        "strong": [
            "buffer pool", "wal", "write-ahead log", "dirty page", "io optimization",
            "direct io", "sequential io", "random io",
        ],
        "weak": ["page", "checkpoint", "flush"],
    },
    # F: distribution & replication
    "F": {
        "strong": [
            "replication", "primary-replica", "master-slave", "consensus", "raft",
            "paxos", "consistency", "eventual consistency", "strong consistency",
            "cap theorem", "shard", "sharding", "hash partition", "range partition",
        ],
        "weak": ["partition", "partitioned", "partitioning"],
    },
}

# Vendor anchors match as substrings so suffixed forms ("dynamodb에서") still count.
DYNAMODB_VENDOR_ANCHORS = ("dynamodb", "다이나모디비")
DYNAMODB_THROUGHPUT_INTENT = (
    "rcu", "wcu", "hot partition", "adaptive capacity", "throttling",
    "provisioned throughput", "on-demand", "ondemand", "온디맨드", "프로비저닝",
    "처리량", "tps", "gsi", "back pressure", "백프레셔",
)

# ---------------------------------------------------------------------------
# BE clusters
# ---------------------------------------------------------------------------

BE_CLUSTER_KEYWORDS = {
    # S: structure & conventions
    "S": {
        "strong": [
            "dependency violation", "import direction", "runtimeonly", "layer rule",
            "port design", "adapter injection", "constructor injection",
            "dependency injection", "stub pattern", "publisher vs producer",
            "module layout", "archunit", "konsist", "fitness function", "hexagonal",
            "port and adapter", "ports and adapters", "gradle multi-module",
            "jpa pattern", "entity model", "dynamic update",
        ],
        "weak": [
            "new module", "naming convention", "checktest", "ci automation",
            "convention", "code style", "naming rule",
        ],
    },
    # B: boundaries & integration
    "B": {
        "strong": [
            "external system", "anti-corruption", "conformist", "semantic gap",
            "context mapping", "feign", "feign client", "testfixtures",
            "internal event", "external event", "sqs", "event versioning",
            "domain event", "integration event", "payment flow", "saga",
            "pivot step", "compensable", "retryable step",
        ],
        "weak": ["acl", "translator", "compensation", "implementation guide", "code pattern"],
    },
    # R: resilience & operability
    "R": {
        "strong": [
            "bulkhead", "thread pool bulkhead", "circuit breaker", "failurerate",
            "slowcall", "resilience4j", "idempotencykey", "decorator chain",
            "alert rule", "grafana", "prometheus", "pagerduty", "micrometer",
        ],
        "weak": [
            "semaphore", "timeout", "retry", "fallback", "backoff", "monitoring",
            "dashboard", "tracing", "observability",
        ],
    },
    # T: testing
    "T": {
        "strong": [
            "fixture monkey", "fakerepository", "test name byte",
            "integrationtestcontext", "stub checklist", "spyk", "mockk", "strikt",
            "testcontainers", "test architecture", "test strategy", "test generation",
            "property-based", "property based", "contract test", "contract-test",
            "test quality",
        ],
        "weak": ["coverage", "mutation"],
    },
}

# ---------------------------------------------------------------------------
# SE clusters
# ---------------------------------------------------------------------------

SE_CLUSTER_KEYWORDS = {
    # A: authentication
    "A": {
        "strong": [
            "authentication", "oauth", "oauth2", "jwt", "saml", "oidc", "openid",
            "sso", "mfa", "login", "session management", "token management",
            "passkey", "webauthn", "refresh token", "access token", "passwordless",
            "bcrypt", "argon2", "scrypt", "authn", "single sign-on",
            "multi-factor", "2fa", "totp", "fido",
        ],
        "weak": ["credential", "biometric", "fingerprint"],
    },
    # Z: authorization
    "Z": {
        "strong": [
            "authorization", "rbac", "abac", "rebac", "access control",
            "policy engine", "opa", "cedar", "casbin", "authz", "least privilege",
            "role-based", "attribute-based", "relationship-based",
        ],
        "weak": ["permission", "role", "privilege", "scope", "grant", "acl"],
    },
    # E: cryptography & secrets
    "E": {
        "strong": [
            "encryption", "tls", "ssl", "key management", "pki", "hmac", "vault",
            "kms", "cipher", "aes", "chacha20", "rsa", "ecdsa", "at-rest",
            "in-transit", "field-level encryption", "secret management",
            "secrets manager", "key rotation", "mtls", "mutual tls", "ocsp",
            "certificate pinning", "hsm",
        ],
        "weak": ["certificate", "hashing", "signing"],
    },
    # N: network & request hardening
    "N": {
        "strong": [
            "firewall", "cors", "csrf", "waf", "rate limiting", "ip filtering",
            "ddos", "network policy", "hsts", "security header", "x-frame-options",
            "referrer-policy", "permissions-policy", "content-security-policy",
            "api gateway security", "request signing", "sql injection", "xss",
            "path traversal",
        ],
        "weak": ["csp", "input validation", "sanitization", "input sanitizer"],
    },
    # C: compliance & privacy
    "C": {
        "strong": [
            "compliance", "zero-trust", "soc2", "iso27001", "gdpr", "pci-dss",
            "audit logging", "dpia", "data retention", "data subject",
            "consent management", "pii", "data masking", "microsegmentation",
            "beyondcorp", "data protection", "hipaa",
        ],
        "weak": ["audit", "governance", "privacy"],
    },
    # V: vulnerability management
    "V": {
        "strong": [
            "vulnerability", "penetration", "owasp", "threat model", "cve",
            "security testing", "sast", "dast", "sbom", "software composition",
            "supply chain", "stride", "attack tree", "attack surface", "pentest",
            "nuclei", "burp", "devsecops", "secure development", "sdl",
        ],
        "weak": ["sca", "pasta", "zap", "exploit", "security review"],
    },
}

# ---------------------------------------------------------------------------
# Systems
# ---------------------------------------------------------------------------

SYSTEM_KEYWORDS = {
    "DB": {
        "strong": [
            "database", "db", "sql", "nosql", "dynamodb", "foreign key",
            "primary key", "table scan",
        ],
        "weak": ["join", "transaction", "schema"],
    },
    "BE": {
        "strong": [
            "rest", "restful", "grpc", "spring", "controller", "service layer",
            "dto", "repository pattern", "dependency injection", "middleware",
            "hexagonal", "archunit", "konsist", "resilience4j", "saga",
            "fixture monkey", "bulkhead", "circuit breaker", "jpa pattern",
            "entity model", "dynamic update", "test strategy", "test generation",
            "property-based", "property based", "contract test", "contract-test",
            "test quality", "domain event", "integration event", "feign",
            "port and adapter", "ports and adapters",
        ],
        "weak": [
            "api", "apis", "acl", "convention", "code style", "naming rule",
            "implementation guide", "code pattern", "coverage", "mutation",
            "backend", "server", "endpoint", "retry", "retries",
        ],
    },
    "IF": {
        "strong": [
            "infrastructure", "kubernetes", "k8s", "docker", "ci/cd",
            "load balancer", "cdn", "dns", "observability", "terraform", "ansible",
            "helm", "auto-scaling", "network topology", "devops", "github actions",
            "jenkins",
        ],
        "weak": ["container", "pipeline", "deployment", "monitoring", "tracing", "scaling", "logging"],
    },
    "SE": {
        "strong": [
            "authentication", "login", "oauth", "jwt", "authorization", "rbac",
            "abac", "encryption", "tls", "ssl", "key management", "zero-trust",
            "compliance", "vulnerability", "penetration", "token management",
            "firewall", "cors", "csrf", "xss", "passkey", "webauthn", "mfa", "sso",
            "saml", "oidc", "gdpr", "pci-dss", "soc2", "iso27001", "dpia", "pii",
            "owasp", "sbom", "sast", "dast", "waf", "threat model", "cve", "stride",
            "devsecops", "secret management", "hsts",
        ],
        "weak": ["security", "audit", "certificate", "injection", "sca", "csp"],
    },
}


@dataclass(frozen=True)
class Signal:
    """One keyword signal compiled for word-boundary matching."""

    phrase: str
    weight: float
    pattern: "re.Pattern[str]" = field(compare=False, repr=False)


@dataclass(frozen=True)
class SignalGroup:
    """All signals of one candidate (a system, domain or cluster)."""

    candidate_id: str
    signals: Tuple[Signal, ...]


def compile_signal(phrase: str, weight: float) -> Signal:
    # Same boundary rule as `grep -w`: the phrase may not touch a word character.
    pattern = re.compile(r"(?<!\w)" + re.escape(phrase) + r"(?!\w)")
    return Signal(phrase=phrase, weight=weight, pattern=pattern)


def build_group(candidate_id: str, spec: Dict[str, List[str]]) -> SignalGroup:
    """
    Compile one keyword table entry.

    A phrase listed as both strong and weak keeps the strong weight.
    """
    weights: Dict[str, float] = {}
    for phrase in spec.get("weak", []):
        weights[phrase] = WEAK_WEIGHT
    for phrase in spec.get("strong", []):
        weights[phrase] = STRONG_WEIGHT
    signals = tuple(compile_signal(p, w) for p, w in sorted(weights.items()))
    return SignalGroup(candidate_id=candidate_id, signals=signals)


SUBDOMAIN_KEYWORDS: Dict[str, Dict[str, Dict[str, List[str]]]] = {
    "DB": DB_DOMAIN_KEYWORDS,
    "BE": BE_CLUSTER_KEYWORDS,
    "SE": SE_CLUSTER_KEYWORDS,
}


def system_spec(system: str) -> Dict[str, List[str]]:
    """A system fires on its own vocabulary and on that of any of its subdomains."""
    spec = {
        "strong": list(SYSTEM_KEYWORDS[system]["strong"]),
        "weak": list(SYSTEM_KEYWORDS[system]["weak"]),
    }
    for subdomain in SUBDOMAIN_KEYWORDS.get(system, {}).values():
        spec["strong"].extend(subdomain["strong"])
        spec["weak"].extend(subdomain["weak"])
    return spec


SYSTEM_GROUPS: Dict[str, SignalGroup] = {
    system: build_group(system, system_spec(system)) for system in SYSTEM_IDS
}

DB_DOMAIN_GROUPS: Dict[str, SignalGroup] = {
    k: build_group(k, v) for k, v in DB_DOMAIN_KEYWORDS.items()
}
BE_CLUSTER_GROUPS: Dict[str, SignalGroup] = {
    k: build_group(k, v) for k, v in BE_CLUSTER_KEYWORDS.items()
}
SE_CLUSTER_GROUPS: Dict[str, SignalGroup] = {
    k: build_group(k, v) for k, v in SE_CLUSTER_KEYWORDS.items()
}

# Subdomain tables by parent system; IF has no subdomains.
SUBDOMAIN_GROUPS: Dict[str, Dict[str, SignalGroup]] = {
    "DB": DB_DOMAIN_GROUPS,
    "BE": BE_CLUSTER_GROUPS,
    "SE": SE_CLUSTER_GROUPS,
}
