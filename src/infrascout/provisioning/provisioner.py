"""Turn an analysis into infrastructure inside one unit of work."""

import logging
from dataclasses import dataclass, field
from uuid import uuid4

from infrascout.analysis.repository import DEPLOY_ORDER
from infrascout.exceptions import ProvisioningError
from infrascout.models.analysis import AnalysisResult, AppType, BuildPack, DetectedApp, EnvCategory
from infrascout.models.provisioning import (
    ApplicationRecord,
    AppOverrides,
    DatabaseRecord,
    DatabaseRequest,
    Destination,
    Environment,
    EnvVariableRecord,
    GitConfig,
    PersistentStorageRecord,
    ProvisioningResult,
    ResourceLink,
)
from infrascout.provisioning.backend import ProvisioningBackend, UnitOfWork
from infrascout.provisioning.engines import EngineRegistry, default_registry
from infrascout.settings import Settings, get_settings

logger = logging.getLogger(__name__)

STATIC_IMAGE = "nginx:alpine"

# Health check defaults; Dockerfile builds get a longer start period
HEALTH_CHECK_DEFAULTS = {"interval": 10, "timeout": 5, "retries": 10, "start_period": 15}
DOCKERFILE_START_PERIOD = 30

# Framework -> prefix that exposes a variable to client-side code
CLIENT_ENV_PREFIXES: dict[str, str] = {
    "nextjs": "NEXT_PUBLIC_",
    "vite-react": "VITE_",
    "vite-vue": "VITE_",
    "vite-svelte": "VITE_",
    "create-react-app": "REACT_APP_",
    "nuxt": "NUXT_PUBLIC_",
    "sveltekit": "VITE_",
}

# Any of these marks a variable as client-side whatever the framework
CLIENT_PREFIXES: tuple[str, ...] = tuple(dict.fromkeys(CLIENT_ENV_PREFIXES.values()))

SKIPPED_ENV_CATEGORIES = frozenset({EnvCategory.DATABASE, EnvCategory.CACHE})


def normalize_base_directory(path: str) -> str:
    """'.' -> '', 'apps/api' -> '/apps/api'."""
    path = path.strip().strip("/")
    if path in ("", "."):
        return ""
    return f"/{path}"


@dataclass
class _Run:
    """State shared by the steps of one provisioning call."""

    analysis: AnalysisResult
    environment: Environment
    destination: Destination
    git_config: GitConfig
    group_id: str | None
    overrides: dict[str, AppOverrides]
    apps: dict[str, DetectedApp] = field(default_factory=dict)
    applications: dict[str, ApplicationRecord] = field(default_factory=dict)
    databases: dict[str, DatabaseRecord] = field(default_factory=dict)
    # (app name, key) pairs already written, so detected defaults never clobber wiring
    written: set[tuple[str, str]] = field(default_factory=set)


class InfrastructureProvisioner:
    """Create databases, applications and their wiring, all or nothing."""

    def __init__(
        self,
        backend: ProvisioningBackend,
        registry: EngineRegistry | None = None,
        unit_of_work: UnitOfWork | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.backend = backend
        self.registry = registry or default_registry(backend.database_creators())
        self.unit_of_work = unit_of_work or backend
        self.settings = settings or get_settings()

    def provision(
        self,
        analysis: AnalysisResult,
        environment: Environment,
        destination_id: int,
        git_config: GitConfig,
        monorepo_group_id: str | None = None,
        app_overrides: dict[str, AppOverrides] | None = None,
    ) -> ProvisioningResult:
        """Provision everything the analysis describes.

        Args:
            analysis: Result of RepositoryAnalyzer.analyze.
            environment: Target environment.
            destination_id: Runtime destination to deploy to.
            git_config: Git source every application builds from.
            monorepo_group_id: Shared tag for all created applications. A new
                one is generated for monorepos when omitted.
            app_overrides: Per app name, base directory and env var overrides.

        Returns:
            Created applications by app name and databases by type.

        Raises:
            ProvisioningError: On any failure. The unit of work is rolled back
                so nothing from this call persists.
        """
        repository = git_config.git_repository
        group_id = monorepo_group_id
        if group_id is None and analysis.monorepo.is_monorepo:
            group_id = str(uuid4())

        logger.info(
            "Provisioning %d apps and %d databases for %s",
            len(analysis.applications),
            len(analysis.databases),
            repository,
        )

        try:
            self.unit_of_work.begin()
            run = _Run(
                analysis=analysis,
                environment=environment,
                destination=self.backend.resolve_destination(destination_id),
                git_config=git_config,
                group_id=group_id,
                overrides=app_overrides or {},
                apps={app.name: app for app in analysis.applications},
            )
            self._create_databases(run)
            self._create_applications(run)
            self._create_resource_links(run)
            self._create_internal_app_links(run)
            self._create_env_variables(run)
            self._apply_overrides(run)
            self._create_persistent_volumes(run)
            self.unit_of_work.commit()
        except Exception as e:
            logger.exception("Provisioning for %s failed, rolling back", repository)
            try:
                self.unit_of_work.rollback()
            except Exception:
                logger.exception("Rollback for %s failed", repository)
            raise ProvisioningError(repository, str(e)) from e

        return ProvisioningResult(
            applications=run.applications,
            databases=run.databases,
            monorepo_group_id=group_id,
        )

    def _create_databases(self, run: _Run) -> None:
        for database in run.analysis.databases:
            if not self.registry.supports(database.type):
                logger.warning(
                    "Skipping unsupported database type %s (supported: %s)",
                    database.type,
                    ", ".join(self.registry.types()),
                )
                continue
            engine = self.registry.get(database.type)
            request = DatabaseRequest(
                type=database.type,
                name=engine.resource_name(database.name),
                description=f"Used by {', '.join(database.consumers)}",
                environment_id=run.environment.id,
                destination_uuid=run.destination.uuid,
            )
            run.databases[database.type] = engine.create(request)
            logger.debug("Created %s database %s", database.type, request.name)

    def _deploy_order(self, run: _Run, app: DetectedApp) -> int:
        for dependency in run.analysis.app_dependencies:
            if dependency.app_name == app.name:
                return dependency.deploy_order
        return DEPLOY_ORDER[app.type]

    def _create_applications(self, run: _Run) -> None:
        apps = sorted(run.analysis.applications, key=lambda a: self._deploy_order(run, a))
        for app in apps:
            override = run.overrides.get(app.name)
            base_directory = normalize_base_directory(
                override.base_directory if override and override.base_directory is not None else app.path
            )
            record = ApplicationRecord(
                name=app.name,
                environment_id=run.environment.id,
                destination_id=run.destination.id,
                **run.git_config.model_dump(),
                build_pack=app.build_pack.value,
                base_directory=base_directory,
                ports_exposes=str(app.default_port),
                install_command=app.install_command,
                build_command=app.build_command,
                start_command=app.start_command,
                publish_directory=app.publish_directory,
                static_image=STATIC_IMAGE if app.build_pack == BuildPack.STATIC else None,
                **self._health_check_fields(app),
                monorepo_group_id=run.group_id,
                fqdn=self.backend.generate_address(app.name, run.environment),
            )
            run.applications[app.name] = self.backend.save_application(record)
            logger.debug("Created application %s (%s)", app.name, app.build_pack)

    @staticmethod
    def _health_check_fields(app: DetectedApp) -> dict:
        fields = {f"health_check_{k}": v for k, v in HEALTH_CHECK_DEFAULTS.items()}
        if app.build_pack == BuildPack.DOCKERFILE:
            fields["health_check_start_period"] = DOCKERFILE_START_PERIOD

        check = app.health_check
        if check is None:
            return fields
        fields["health_check_enabled"] = check.path is not None
        fields["health_check_path"] = check.path
        fields["health_check_method"] = check.method
        for name, value in (
            ("interval", check.interval_seconds),
            ("timeout", check.timeout_seconds),
            ("retries", check.retries),
            ("start_period", check.start_period_seconds),
        ):
            if value > 0:
                fields[f"health_check_{name}"] = value
        return fields

    def _create_resource_links(self, run: _Run) -> None:
        for database in run.analysis.databases:
            record = run.databases.get(database.type)
            if record is None:
                continue
            for consumer in database.consumers:
                application = run.applications.get(consumer)
                if application is None:
                    logger.warning("Database %s consumer %s was not provisioned", database.type, consumer)
                    continue
                self.backend.create_resource_link(
                    ResourceLink(
                        environment_id=run.environment.id,
                        source_app_id=application.id,
                        target_type=database.type,
                        target_id=record.id,
                        auto_inject=True,
                        inject_as=database.env_var_name,
                        use_external_url=False,
                    )
                )
                run.written.add((consumer, database.env_var_name))

    def _create_internal_app_links(self, run: _Run) -> None:
        for dependency in run.analysis.app_dependencies:
            source = run.applications.get(dependency.app_name)
            source_app = run.apps.get(dependency.app_name)
            if source is None or source_app is None:
                continue
            prefix = CLIENT_ENV_PREFIXES.get(source_app.framework)
            for key, target_name in dependency.internal_urls.items():
                target = run.applications.get(target_name)
                if target is None:
                    continue
                client_side = source_app.type == AppType.FRONTEND or key.startswith(CLIENT_PREFIXES)
                if client_side:
                    self._set_env(run, source, key, target.fqdn or "", is_buildtime=True)
                    if prefix and not key.startswith(CLIENT_PREFIXES):
                        self._set_env(run, source, f"{prefix}{key}", target.fqdn or "", is_buildtime=True)
                else:
                    self._set_env(run, source, key, f"http://{target.uuid}:{target.ports_exposes}")

    def _create_env_variables(self, run: _Run) -> None:
        template = self.settings.env_placeholder_template
        for variable in run.analysis.env_variables:
            if variable.category in SKIPPED_ENV_CATEGORIES:
                continue
            application = run.applications.get(variable.for_app)
            if application is None or (variable.for_app, variable.key) in run.written:
                continue
            if variable.default_value is not None:
                value = variable.default_value
            elif variable.is_required:
                value = template.format(key=variable.key)
            else:
                continue
            self._set_env(run, application, variable.key, value)

    def _apply_overrides(self, run: _Run) -> None:
        for app_name, override in run.overrides.items():
            application = run.applications.get(app_name)
            if application is None:
                logger.warning("Ignoring overrides for unknown app %s", app_name)
                continue
            for key, value in override.env_vars.items():
                self._set_env(run, application, key, value)

    def _create_persistent_volumes(self, run: _Run) -> None:
        for volume in run.analysis.persistent_volumes:
            application = run.applications.get(volume.for_app)
            if application is None:
                continue
            self.backend.create_persistent_storage(
                PersistentStorageRecord(
                    application_id=application.id,
                    name=f"{application.name}-{volume.name}",
                    mount_path=volume.mount_path,
                )
            )
            if volume.env_var_name and (volume.for_app, volume.env_var_name) not in run.written:
                self._set_env(run, application, volume.env_var_name, volume.env_var_value or "")

    def _set_env(
        self,
        run: _Run,
        application: ApplicationRecord,
        key: str,
        value: str,
        is_buildtime: bool = False,
    ) -> None:
        self.backend.create_env_variable(
            EnvVariableRecord(
                application_id=application.id,
                key=key,
                value=value,
                is_buildtime=is_buildtime,
            )
        )
        run.written.add((application.name, key))
