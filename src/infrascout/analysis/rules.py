"""Ordered detection rule tables.

Order is precedence everywhere in this module: the first matching rule wins.
Detectors take these tables as constructor arguments so callers can reorder
or extend them.
"""

import re
from dataclasses import dataclass, field

from infrascout.models.analysis import AppType, BuildPack, EnvCategory
from infrascout.models.provisioning import EngineFamily


@dataclass(frozen=True, slots=True)
class FrameworkRule:
    """Signature of one framework in one manifest.

    match_mode "any" needs one of deps, "all" needs every dep. A rule with no
    deps matches on manifest presence alone. pattern is a regex tried against
    the raw manifest text when no dep matched (alt_pattern for alt_manifest).
    """

    framework: str
    manifest: str
    deps: tuple[str, ...]
    build_pack: BuildPack
    default_port: int
    type: AppType
    match_mode: str = "any"
    exclude_deps: tuple[str, ...] = ()
    alt_manifest: str | None = None
    pattern: str | None = None
    alt_pattern: str | None = None
    build_command: str | None = None
    publish_directory: str | None = None


def _node(framework, deps, port=3000, type=AppType.BACKEND, **kw) -> FrameworkRule:
    return FrameworkRule(framework, "package.json", deps, BuildPack.NIXPACKS, port, type, **kw)


def _static(framework, deps, publish="dist", **kw) -> FrameworkRule:
    return FrameworkRule(
        framework,
        "package.json",
        deps,
        BuildPack.STATIC,
        80,
        AppType.FRONTEND,
        build_command="npm run build",
        publish_directory=publish,
        **kw,
    )


def _backend(framework, manifest, deps, port, **kw) -> FrameworkRule:
    return FrameworkRule(framework, manifest, deps, BuildPack.NIXPACKS, port, AppType.BACKEND, **kw)


# Meta-frameworks come before the low-level servers they embed
FRAMEWORK_RULES: tuple[FrameworkRule, ...] = (
    _node("nestjs", ("@nestjs/core",)),
    _node("nextjs", ("next",), type=AppType.FULLSTACK),
    _node("nuxt", ("nuxt",), type=AppType.FULLSTACK),
    _node("remix", ("@remix-run/node",), type=AppType.FULLSTACK),
    _node("astro", ("astro",), port=4321, type=AppType.FRONTEND),
    _node("sveltekit", ("@sveltejs/kit",), type=AppType.FULLSTACK),
    _static("vite-react", ("vite", "react"), match_mode="all", exclude_deps=("next", "@remix-run/react")),
    _static("vite-vue", ("vite", "vue"), match_mode="all", exclude_deps=("nuxt",)),
    _static("vite-svelte", ("vite", "svelte"), match_mode="all", exclude_deps=("@sveltejs/kit",)),
    _static("create-react-app", ("react-scripts",), publish="build"),
    _node("fastify", ("fastify",)),
    _node("hono", ("hono",)),
    _node("express", ("express",), exclude_deps=("@nestjs/core", "next")),
    _backend("django", "requirements.txt", ("django",), 8000, alt_manifest="pyproject.toml"),
    _backend("fastapi", "requirements.txt", ("fastapi",), 8000, alt_manifest="pyproject.toml"),
    _backend("flask", "requirements.txt", ("flask",), 5000, alt_manifest="pyproject.toml"),
    _backend("go-fiber", "go.mod", ("github.com/gofiber/fiber/v2", "github.com/gofiber/fiber"), 3000),
    _backend("go-gin", "go.mod", ("github.com/gin-gonic/gin",), 8080),
    _backend("go-echo", "go.mod", ("github.com/labstack/echo/v4", "github.com/labstack/echo"), 8080),
    _backend("go", "go.mod", (), 8080),
    _backend("rails", "Gemfile", ("rails",), 3000, pattern=r"""gem\s+['"]rails['"]"""),
    _backend("sinatra", "Gemfile", ("sinatra",), 4567, pattern=r"""gem\s+['"]sinatra['"]"""),
    _backend("rust-axum", "Cargo.toml", ("axum",), 3000, pattern=r"(?m)^axum\s*="),
    _backend("rust-actix", "Cargo.toml", ("actix-web",), 8080, pattern=r"(?m)^actix-web\s*="),
    _backend("rust", "Cargo.toml", (), 8080),
    _backend("laravel", "composer.json", ("laravel/framework",), 8000),
    _backend("symfony", "composer.json", ("symfony/framework-bundle",), 8000),
    _backend("phoenix", "mix.exs", (":phoenix",), 4000, pattern=r"\{:phoenix,"),
    _backend(
        "spring-boot",
        "pom.xml",
        ("spring-boot-starter",),
        8080,
        pattern=r"<artifactId>spring-boot-starter",
        alt_manifest="build.gradle",
        alt_pattern=r"org\.springframework\.boot",
    ),
)


@dataclass(frozen=True, slots=True)
class DatabaseRule:
    """Package names per ecosystem that imply a database engine."""

    type: str
    packages: dict[str, tuple[str, ...]]


# Ambiguous ORMs (prisma, sequelize, knex) default to postgresql
DATABASE_RULES: tuple[DatabaseRule, ...] = (
    DatabaseRule("postgresql", {
        "npm": ("pg", "postgres", "@prisma/client", "sequelize", "typeorm", "drizzle-orm", "knex"),
        "pip": ("psycopg2", "psycopg2-binary", "psycopg", "asyncpg"),
        "composer": ("doctrine/dbal", "illuminate/database"),
        "gem": ("pg", "activerecord-postgresql-adapter"),
        "go": ("github.com/lib/pq", "github.com/jackc/pgx", "github.com/jackc/pgx/v5", "gorm.io/driver/postgres"),
        "cargo": ("tokio-postgres", "diesel"),
    }),
    DatabaseRule("mysql", {
        "npm": ("mysql", "mysql2"),
        "pip": ("mysqlclient", "pymysql", "aiomysql"),
        "gem": ("mysql2",),
        "go": ("github.com/go-sql-driver/mysql", "gorm.io/driver/mysql"),
        "cargo": ("mysql",),
    }),
    DatabaseRule("mongodb", {
        "npm": ("mongodb", "mongoose", "@typegoose/typegoose"),
        "pip": ("pymongo", "motor", "mongoengine"),
        "composer": ("mongodb/mongodb", "jenssegers/mongodb"),
        "gem": ("mongoid", "mongo"),
        "go": ("go.mongodb.org/mongo-driver",),
        "cargo": ("mongodb",),
    }),
    DatabaseRule("redis", {
        "npm": ("redis", "ioredis", "@upstash/redis", "bullmq", "bull"),
        "pip": ("redis", "aioredis", "celery"),
        "composer": ("predis/predis",),
        "gem": ("redis", "sidekiq", "resque"),
        "go": ("github.com/go-redis/redis", "github.com/redis/go-redis", "github.com/redis/go-redis/v9"),
        "cargo": ("redis", "deadpool-redis"),
    }),
    DatabaseRule("clickhouse", {
        "npm": ("@clickhouse/client", "clickhouse"),
        "pip": ("clickhouse-driver", "clickhouse-connect", "asynch"),
        "go": ("github.com/ClickHouse/clickhouse-go",),
    }),
)

# File-based SQLite needs a persistent volume, not a database instance
SQLITE_PACKAGES: dict[str, tuple[str, ...]] = {
    "npm": ("better-sqlite3", "sql.js", "sqlite3"),
    "pip": ("aiosqlite",),
    "composer": ("ext-sqlite3",),
    "gem": ("sqlite3",),
    "go": ("github.com/mattn/go-sqlite3", "modernc.org/sqlite", "gorm.io/driver/sqlite"),
    "cargo": ("rusqlite",),
}


@dataclass(frozen=True, slots=True)
class SqliteDefaults:
    mount_path: str
    env_var_name: str
    env_var_value: str


SQLITE_FRAMEWORK_DEFAULTS: dict[str, SqliteDefaults] = {
    "laravel": SqliteDefaults(
        "/var/www/html/database", "DB_DATABASE", "/var/www/html/database/database.sqlite"
    ),
    "django": SqliteDefaults("/app/data", "DATABASE_PATH", "/app/data/db.sqlite3"),
}
SQLITE_DEFAULT = SqliteDefaults("/data", "DATABASE_PATH", "/data/db.sqlite")


@dataclass(frozen=True, slots=True)
class ServiceRule:
    """External service signature: packages per ecosystem and env key prefixes."""

    type: str
    description: str
    env_vars: tuple[str, ...]
    packages: dict[str, tuple[str, ...]] = field(default_factory=dict)
    env_prefixes: tuple[str, ...] = ()


SERVICE_RULES: tuple[ServiceRule, ...] = (
    ServiceRule(
        "s3",
        "S3-compatible object storage (AWS S3, MinIO, etc.)",
        ("AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "S3_BUCKET", "S3_ENDPOINT"),
        {
            "npm": ("@aws-sdk/client-s3", "aws-sdk", "minio"),
            "pip": ("boto3", "minio"),
            "go": ("github.com/aws/aws-sdk-go", "github.com/minio/minio-go"),
        },
        ("S3_", "AWS_S3_", "MINIO_"),
    ),
    ServiceRule(
        "elasticsearch",
        "Elasticsearch for full-text search",
        ("ELASTICSEARCH_URL",),
        {
            "npm": ("@elastic/elasticsearch",),
            "pip": ("elasticsearch", "elasticsearch-dsl"),
            "go": ("github.com/elastic/go-elasticsearch",),
        },
        ("ELASTICSEARCH_", "ELASTIC_"),
    ),
    ServiceRule(
        "rabbitmq",
        "RabbitMQ message broker",
        ("RABBITMQ_URL",),
        {
            "npm": ("amqplib", "amqp-connection-manager"),
            "pip": ("pika", "aio-pika"),
            "go": ("github.com/streadway/amqp", "github.com/rabbitmq/amqp091-go"),
        },
        ("RABBITMQ_", "AMQP_"),
    ),
    ServiceRule(
        "kafka",
        "Apache Kafka for event streaming",
        ("KAFKA_BROKERS",),
        {
            "npm": ("kafkajs", "node-rdkafka"),
            "pip": ("kafka-python", "aiokafka", "confluent-kafka"),
            "go": ("github.com/segmentio/kafka-go", "github.com/confluentinc/confluent-kafka-go"),
        },
        ("KAFKA_",),
    ),
    ServiceRule(
        "email",
        "Email delivery (SMTP, SendGrid, Resend)",
        ("SMTP_HOST", "SMTP_PORT"),
        {
            "npm": ("nodemailer", "@sendgrid/mail", "resend"),
            "pip": ("sendgrid", "resend"),
        },
        ("SMTP_", "MAIL_", "SENDGRID_", "RESEND_", "MAILGUN_", "POSTMARK_"),
    ),
    ServiceRule(
        "stripe",
        "Stripe payments",
        ("STRIPE_SECRET_KEY",),
        {"npm": ("stripe",), "pip": ("stripe",), "gem": ("stripe",), "go": ("github.com/stripe/stripe-go",)},
        ("STRIPE_",),
    ),
    ServiceRule(
        "sentry",
        "Sentry error tracking",
        ("SENTRY_DSN",),
        {"npm": ("@sentry/node", "@sentry/nextjs"), "pip": ("sentry-sdk",)},
        ("SENTRY_",),
    ),
)


@dataclass(frozen=True, slots=True)
class EnvCategoryRule:
    """Env keys containing any of the substrings fall into category."""

    category: EnvCategory
    substrings: tuple[str, ...]

    def matches(self, key: str) -> bool:
        upper = key.upper()
        return any(s in upper for s in self.substrings)


# POSTGRES_PASSWORD is a database var, not a secret: database is checked first
ENV_CATEGORY_RULES: tuple[EnvCategoryRule, ...] = (
    EnvCategoryRule(
        EnvCategory.DATABASE,
        ("DATABASE", "DB_", "POSTGRES", "PG_", "MYSQL", "MARIADB", "MONGO", "CLICKHOUSE"),
    ),
    EnvCategoryRule(EnvCategory.CACHE, ("REDIS", "CACHE", "MEMCACHE", "KEYDB", "DRAGONFLY")),
    EnvCategoryRule(
        EnvCategory.SECRET,
        ("SECRET", "_KEY", "_TOKEN", "PASSWORD", "_PASS", "PRIVATE", "_DSN", "CREDENTIALS"),
    ),
)


def categorize_env_var(key: str, rules: tuple[EnvCategoryRule, ...] = ENV_CATEGORY_RULES) -> EnvCategory:
    for rule in rules:
        if rule.matches(key):
            return rule.category
    return EnvCategory.OTHER


@dataclass(frozen=True, slots=True)
class ImageRule:
    """Container image name pattern for a database engine."""

    pattern: str
    type: str
    default_port: int

    def matches(self, image: str) -> bool:
        return re.search(self.pattern, image_repository(image)) is not None


# mariadb before mysql so "mariadb" never falls through to a looser match
IMAGE_RULES: tuple[ImageRule, ...] = (
    ImageRule(r"(^|/)(postgres|postgresql|postgis|pgvector|timescaledb|timescaledb-ha)$", "postgresql", 5432),
    ImageRule(r"(^|/)mariadb$", "mariadb", 3306),
    ImageRule(r"(^|/)(mysql|mysql-server)$", "mysql", 3306),
    ImageRule(r"(^|/)(mongo|mongodb)$", "mongodb", 27017),
    ImageRule(r"(^|/)(redis|redis-stack|redis-stack-server|valkey)$", "redis", 6379),
    ImageRule(r"(^|/)keydb$", "keydb", 6379),
    ImageRule(r"(^|/)dragonfly$", "dragonfly", 6379),
    ImageRule(r"(^|/)clickhouse(-server)?$", "clickhouse", 8123),
)


def image_repository(image: str) -> str:
    """Image reference without registry host, tag or digest, e.g. bitnami/postgresql."""
    name = image.split("@", 1)[0]
    last = name.rsplit("/", 1)[-1]
    if ":" in last:
        name = name[: len(name) - len(last)] + last.split(":", 1)[0]
    parts = name.split("/")
    if len(parts) > 1 and ("." in parts[0] or ":" in parts[0] or parts[0] == "localhost"):
        parts = parts[1:]
    return "/".join(parts).lower()


def image_tag(image: str) -> str | None:
    last = image.split("@", 1)[0].rsplit("/", 1)[-1]
    if ":" not in last:
        return None
    return last.split(":", 1)[1] or None


# Engine type -> storage family, which picks the provisioned name suffix
ENGINE_FAMILIES: dict[str, EngineFamily] = {
    "postgresql": EngineFamily.RELATIONAL,
    "mysql": EngineFamily.RELATIONAL,
    "mariadb": EngineFamily.RELATIONAL,
    "mongodb": EngineFamily.DOCUMENT,
    "redis": EngineFamily.KEY_VALUE,
    "keydb": EngineFamily.KEY_VALUE,
    "dragonfly": EngineFamily.KEY_VALUE,
    "clickhouse": EngineFamily.COLUMNAR,
}
