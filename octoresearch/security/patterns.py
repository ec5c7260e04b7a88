"""Catalogue of secret-shaped patterns used by the sanitizer.

Every pattern is compiled once at import time and shared by all pipeline
invocations. Order matters: when two matches have the same span length the
earlier pattern wins, so specific formats are listed before generic ones.
The category becomes part of the redaction token.
"""

from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class SecretPattern:
    """A named, categorized, precompiled secret detector."""

    name: str
    category: str
    description: str
    regex: re.Pattern[str]


def _p(name: str, category: str, description: str, pattern: str, flags: int = 0) -> SecretPattern:
    return SecretPattern(name, category, description, re.compile(pattern, flags))


_I = re.IGNORECASE

PRIVATE_KEY_PATTERNS = [
    _p(
        "privateKeyPem",
        "private_key",
        "Private key in PEM format",
        r"-----BEGIN\s?(?:(?:RSA|DSA|EC|OPENSSH|ENCRYPTED)\s+)?PRIVATE\s+KEY(?:\s+BLOCK)?-----"
        r"[\s\S]*?-----END\s?(?:(?:RSA|DSA|EC|OPENSSH|ENCRYPTED)\s+)?PRIVATE\s+KEY(?:\s+BLOCK)?-----",
    ),
    _p(
        "pgpPrivateKeyBlock",
        "private_key",
        "PGP private key block",
        r"-----BEGIN\s+PGP\s+PRIVATE\s+KEY\s+BLOCK-----[\s\S]*?-----END\s+PGP\s+PRIVATE\s+KEY\s+BLOCK-----",
    ),
    _p(
        "sshPrivateKeyEncrypted",
        "private_key",
        "SSH2 encrypted private key",
        r"-----BEGIN SSH2 ENCRYPTED PRIVATE KEY-----[\s\S]*?-----END SSH2 ENCRYPTED PRIVATE KEY-----",
    ),
    _p(
        "puttyPrivateKey",
        "private_key",
        "PuTTY private key file",
        r"PuTTY-User-Key-File-[23]:[\s\S]*?Private-MAC:\s*[0-9a-fA-F]+",
    ),
]

AI_PROVIDER_PATTERNS = [
    _p("anthropicApiKey", "ai_provider", "Anthropic API key", r"\bsk-ant-(?:admin01|api03)-[\w-]{93}AA\b"),
    _p("openRouterApiKey", "ai_provider", "OpenRouter API key", r"\bsk-or-v1-[a-zA-Z0-9]{64}\b"),
    _p("openaiApiKey", "ai_provider", "OpenAI API key", r"\bsk-[a-zA-Z0-9_-]+T3BlbkFJ[a-zA-Z0-9_-]+\b"),
    _p("openaiProjectKey", "ai_provider", "OpenAI project key", r"\bsk-proj-[a-zA-Z0-9_-]{40,}\b"),
    _p("groqApiKey", "ai_provider", "Groq API key", r"\bgsk_[a-zA-Z0-9_-]{51,52}\b"),
    _p("huggingFaceToken", "ai_provider", "Hugging Face API token", r"\bhf_[a-zA-Z0-9]{34}\b"),
    _p("perplexityApiKey", "ai_provider", "Perplexity AI API key", r"\bpplx-[a-zA-Z0-9]{30,64}\b"),
    _p("replicateApiToken", "ai_provider", "Replicate API token", r"\br8_[a-zA-Z0-9]{30,}\b"),
    _p("tavilyApiKey", "ai_provider", "Tavily API key", r"\btvly-[a-zA-Z0-9]{30,}\b"),
    _p("xaiApiKey", "ai_provider", "xAI API key", r"\bxai-[a-zA-Z0-9]{48,}\b"),
    _p("genericSkKey", "ai_provider", "sk- prefixed provider key", r"\bsk-[a-zA-Z0-9]{32,64}\b"),
]

AWS_PATTERNS = [
    _p("awsAccessKeyId", "aws", "AWS access key ID", r"\b(?:AKIA|ABIA|ACCA|ASIA)[A-Z0-9]{16}\b"),
    _p(
        "awsSecretAccessKey",
        "aws",
        "AWS secret access key",
        r"\baws_?secret_?access_?key\b\s*[:=]\s*[\"']?[A-Za-z0-9/+=]{40}[\"']?",
        _I,
    ),
    _p("awsAppSyncApiKey", "aws", "AWS AppSync GraphQL API key", r"\bda2-[a-z0-9]{26}\b"),
    _p("alibabaAccessKeyId", "cloud", "Alibaba Cloud AccessKey ID", r"\bLTAI[a-zA-Z0-9]{20}\b"),
]

CLOUD_PATTERNS = [
    _p("googleApiKey", "cloud", "Google API key", r"\bAIza[a-zA-Z0-9_-]{30,}"),
    _p("googleOauthToken", "cloud", "Google OAuth token", r"\bya29\.[a-zA-Z0-9_-]{20,}"),
    _p(
        "azureStorageConnectionString",
        "cloud",
        "Azure storage account connection string",
        r"DefaultEndpointsProtocol=https?;AccountName=[a-z0-9]+;AccountKey=[A-Za-z0-9+/=]{40,}",
        _I,
    ),
    _p("digitalOceanToken", "cloud", "DigitalOcean token", r"\bdo[por]_v1_[a-f0-9]{64}\b"),
    _p("vercelToken", "cloud", "Vercel API token", r"\bvercel_[a-zA-Z0-9]{24}\b"),
    _p("herokuApiKeyV2", "cloud", "Heroku API key", r"\bHRKU-AA[0-9a-zA-Z_-]{58}\b"),
    _p("flyioAccessToken", "cloud", "Fly.io access token", r"\bfo1_[\w-]{43}\b"),
    _p("dopplerApiToken", "cloud", "Doppler API token", r"\bdp\.pt\.[a-z0-9]{43}\b", _I),
    _p("supabaseServiceKey", "cloud", "Supabase service role key", r"\bsbp_[a-f0-9]{40}\b"),
    _p("planetScaleToken", "cloud", "PlanetScale API token", r"\bpscale_tkn_[a-zA-Z0-9_-]{38,43}\b"),
    _p("vaultServiceToken", "cloud", "HashiCorp Vault token", r"\bhv[sbp]\.[a-zA-Z0-9_-]{20,}\b"),
]

VERSION_CONTROL_PATTERNS = [
    _p(
        "githubTokens",
        "version_control",
        "GitHub tokens",
        r"\b(?:ghp|gho|ghu|ghs|ghr|github_pat)_[a-zA-Z0-9_]{36,255}\b",
    ),
    _p("gitlabPersonalAccessToken", "version_control", "GitLab personal access token", r"\bglpat-[A-Za-z0-9_-]{20}\b"),
    _p("gitlabDeployToken", "version_control", "GitLab deploy token", r"\bgldt-[A-Za-z0-9_-]{20}\b"),
    _p("gitlabRunnerToken", "version_control", "GitLab runner token", r"\bglrt-[A-Za-z0-9_-]{20}\b"),
    _p("gitlabPipelineTriggerToken", "version_control", "GitLab trigger token", r"\bglptt-[0-9a-f]{40}\b"),
    _p("bitbucketAppPassword", "version_control", "Bitbucket app password", r"\bATBB[a-zA-Z0-9]{32}\b"),
]

DEVELOPER_TOOLS_PATTERNS = [
    _p("npmAccessToken", "developer_tools", "npm access token", r"\bnpm_[a-zA-Z0-9]{36}\b"),
    _p("pypiApiToken", "developer_tools", "PyPI API token", r"\bpypi-[a-zA-Z0-9_-]{84,}"),
    _p("dockerHubToken", "developer_tools", "Docker Hub access token", r"\bdckr_pat_[a-zA-Z0-9_-]{27,36}\b"),
    _p("figmaToken", "developer_tools", "Figma access token", r"\bfigd_[a-zA-Z0-9_-]{43}\b"),
    _p("postmanApiKey", "developer_tools", "Postman API key", r"\bPMAK-[a-f0-9]{24}-[a-f0-9]{34}\b"),
    _p("sentryAuthToken", "developer_tools", "Sentry auth token", r"\bsntrys_[a-zA-Z0-9+/=_-]{60,}"),
]

PAYMENT_PATTERNS = [
    _p("stripeSecretKey", "payment", "Stripe live secret key", r"\b[rs]k_live_[a-zA-Z0-9]{20,247}\b"),
    _p("stripeWebhookSecret", "payment", "Stripe webhook secret", r"\bwhsec_[a-zA-Z0-9]{32,}\b"),
    _p("squareAccessToken", "payment", "Square access token", r"\bEAAA[a-zA-Z0-9_-]{60}\b"),
    _p(
        "plaidApiToken",
        "payment",
        "Plaid API token",
        r"\baccess-(?:sandbox|development|production)-[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}\b",
    ),
]

MESSAGING_PATTERNS = [
    _p("slackToken", "messaging", "Slack token", r"\bxox[bpar]-[0-9]{10,13}-[0-9]{10,13}[a-zA-Z0-9-]*"),
    _p(
        "slackWebhookUrl",
        "messaging",
        "Slack incoming webhook URL",
        r"https://hooks\.slack\.com/services/T[A-Z0-9]+/B[A-Z0-9]+/[A-Za-z0-9]+",
    ),
    _p(
        "discordWebhookUrl",
        "messaging",
        "Discord webhook URL",
        r"https://(?:ptb\.|canary\.)?discord(?:app)?\.com/api/webhooks/[0-9]+/[A-Za-z0-9_-]+",
    ),
    _p("discordBotToken", "messaging", "Discord bot token", r"\b[MN][A-Za-z\d]{23}\.[\w-]{6}\.[\w-]{27}\b"),
    _p("telegramBotToken", "messaging", "Telegram bot token", r"\b[0-9]{8,10}:[A-Za-z0-9_-]{35}\b"),
    _p("sendgridApiKey", "messaging", "SendGrid API key", r"\bSG\.[A-Za-z0-9_-]{20,22}\.[A-Za-z0-9_-]{43}\b"),
    _p("mailgunApiKey", "messaging", "Mailgun API key", r"\bkey-[0-9a-z]{32}\b"),
    _p("twilioApiKey", "messaging", "Twilio API key", r"\bSK[0-9a-fA-F]{32}\b"),
]

DATABASE_PATTERNS = [
    _p(
        "postgresqlConnectionString",
        "database",
        "PostgreSQL connection string with credentials",
        r"\bpostgres(?:ql)?://[^:\s/]+:[^@\s]+@[^/\s]+(?:/[^?\s'\"]*)?",
        _I,
    ),
    _p(
        "mysqlConnectionString",
        "database",
        "MySQL connection string with credentials",
        r"\bmysql://[^:\s/]+:[^@\s]+@[^/\s]+(?:/[^?\s'\"]*)?",
        _I,
    ),
    _p(
        "mongodbConnectionString",
        "database",
        "MongoDB connection string with credentials",
        r"\bmongodb(?:\+srv)?://[^:\s/]+:[^@\s]+@[^\s'\"]+",
    ),
    _p(
        "redisConnectionString",
        "database",
        "Redis connection string with credentials",
        r"\bredis(?:s)?://[^:\s/]*:[^@\s]+@[^\s'\"]+",
    ),
]

AUTH_PATTERNS = [
    _p(
        "jwtToken",
        "auth",
        "JSON Web Token",
        r"\bey[a-zA-Z0-9_-]{17,}\.ey[a-zA-Z0-9/_-]{17,}\.(?:[a-zA-Z0-9/_-]{10,}={0,2})?",
    ),
    _p(
        "sessionIds",
        "auth",
        "Session IDs and cookies",
        r"(?:JSESSIONID|PHPSESSID|ASP\.NET_SessionId|connect\.sid|session_id)=[a-zA-Z0-9%:._-]{8,}",
        _I,
    ),
    _p(
        "bearerToken",
        "auth",
        "Bearer token in an Authorization header",
        r"\bAuthorization\s*:\s*Bearer\s+[A-Za-z0-9._~+/-]{20,}=*",
        _I,
    ),
]

GENERIC_SECRET_PATTERNS = [
    _p(
        "credentialsInUrl",
        "generic_secret",
        "Credentials embedded in URL",
        r"\b[a-zA-Z][a-zA-Z0-9+.-]{2,9}://[^\\/\s:@]{3,20}:[^\\/\s:@]{3,40}@[^\s'\"]+",
    ),
    _p(
        "envVarSecrets",
        "generic_secret",
        "Environment variable secrets (KEY, SECRET, TOKEN, PASSWORD)",
        r"\b(?:\w+_)?(?:secret|password|passwd|key|token|jwt_secret)(?:_\w+)?\s*=\s*[\"'][^\"'\n]{16,}[\"']",
        _I,
    ),
    _p(
        "genericApiKeyAssignment",
        "generic_secret",
        "API key, token or client secret assignment",
        r"\b(?:api[_-]?key|access[_-]?token|auth[_-]?token|client[_-]?secret)\b[\"']?\s*[:=]\s*[\"']?[A-Za-z0-9_\-]{20,}[\"']?",
        _I,
    ),
]

PII_PATTERNS = [
    _p(
        "emailAddress",
        "pii",
        "E-mail address",
        r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9-]+(?:\.[A-Za-z0-9-]+)*\.[A-Za-z]{2,}\b",
    ),
]

ALL_PATTERNS: tuple[SecretPattern, ...] = tuple(
    PRIVATE_KEY_PATTERNS
    + AI_PROVIDER_PATTERNS
    + AWS_PATTERNS
    + CLOUD_PATTERNS
    + VERSION_CONTROL_PATTERNS
    + DEVELOPER_TOOLS_PATTERNS
    + PAYMENT_PATTERNS
    + MESSAGING_PATTERNS
    + DATABASE_PATTERNS
    + AUTH_PATTERNS
    + GENERIC_SECRET_PATTERNS
    + PII_PATTERNS
)

CATEGORIES: frozenset[str] = frozenset(p.category for p in ALL_PATTERNS)

REDACTION_TOKEN_RE = re.compile(r"\[REDACTED:[a-z_]+\]")


def redaction_token(category: str) -> str:
    return f"[REDACTED:{category}]"
