"""The fixed Laravel + Filament install sequence."""
from __future__ import annotations

import logging
import shlex
from pathlib import Path
from typing import List, Optional

from . import patchers
from .orchestrator import RunContext, Step
from .schemas import DatabaseChoice, DatabaseConnection, EventStatus, StarterKit

logger = logging.getLogger(__name__)

SUPABASE_ENV = {
    "DB_CONNECTION": "pgsql",
    "DB_HOST": "localhost",
    "DB_PORT": "54322",
    "DB_DATABASE": "postgres",
    "DB_USERNAME": "postgres",
    "DB_PASSWORD": "postgres",
}

VITE_PLUGINS = {
    StarterKit.REACT: ("npm_install_vite_react", "@vitejs/plugin-react"),
    StarterKit.VUE: ("npm_install_vite_vue", "@vitejs/plugin-vue"),
}


def _project(context: RunContext) -> Path:
    return context.project_path or context.cwd


def prechecks(context: RunContext) -> None:
    for tool in context.required_tools:
        context.require_tool(tool, f"{tool} does not appear to be installed. Install it before continuing.")
    context.params.base_dir.mkdir(parents=True, exist_ok=True)
    context.record("prechecks", EventStatus.SUCCESS, stdout=f"Base directory: {context.params.base_dir}")


def scaffold(context: RunContext) -> None:
    params = context.params
    if not context.tool_lookup("laravel"):
        context.run_command(
            "install_laravel_installer",
            "composer global require laravel/installer -q -n",
            failure="Failed to install the Laravel installer",
        )
    context.run_command(
        "laravel_new",
        f"laravel new {shlex.quote(params.project_name)} {params.starter_kit.flag} --git --pest --no-interaction",
        failure="Failed to create the Laravel project",
    )
    context.enter_project(context.cwd / params.project_name)
    context.record("chdir_project", EventStatus.SUCCESS, stdout=str(context.project_path))


def _record_patch(context: RunContext, name: str, outcome: patchers.PatchOutcome) -> None:
    where = outcome.path.name if outcome.path else name
    context.record(
        name,
        EventStatus.SUCCESS if outcome.patched else EventStatus.SKIPPED,
        stdout=f"{where}: {outcome.label}",
    )


def _record_written(context: RunContext, name: str, path: Path) -> None:
    context.record(name, EventStatus.SUCCESS, stdout=f"{path.name} written")


def database(context: RunContext) -> None:
    params = context.params
    project = _project(context)

    if params.database.requires_connection and params.connection is not None:
        _check_database_service(context, params.connection)

    if params.database is DatabaseChoice.SUPABASE:
        context.require_tool("node", "Node.js is not installed. It is required for Supabase.")
        context.require_tool("npm", "npm is not installed. It is required for Supabase.")
        context.run_command(
            "npm_install_supabase_cli", "npm install supabase --save-dev", failure="Failed to install the Supabase CLI"
        )
        context.run_command(
            "docker_info", "docker info", failure="Docker is not running. Start it before continuing."
        )
        context.run_command("supabase_init", "npx supabase init --yes", failure="Failed to initialise Supabase")
        context.run_command("supabase_start", "npx supabase start", failure="Failed to start Supabase")

    if params.database is DatabaseChoice.SQLITE:
        _record_patch(context, "configure_env", patchers.merge_env_file(project, {"DB_CONNECTION": "sqlite"}))
        _record_written(context, "create_sqlite_database", patchers.create_sqlite_database(project))
    elif params.database is DatabaseChoice.SUPABASE:
        _record_patch(context, "configure_env", patchers.merge_env_file(project, SUPABASE_ENV))
    elif params.connection is not None:
        connection = params.connection
        outcome = patchers.merge_env_file(
            project,
            {
                "DB_CONNECTION": "mysql" if params.database is DatabaseChoice.MYSQL else "pgsql",
                "DB_HOST": connection.host,
                "DB_PORT": connection.port,
                "DB_DATABASE": connection.name,
                "DB_USERNAME": connection.user,
                "DB_PASSWORD": connection.password,
            },
        )
        _record_patch(context, "configure_env", outcome)

    _record_patch(context, "configure_app_locale", patchers.merge_env_file(project, {"APP_LOCALE": context.app_locale}))
    context.run_command("artisan_migrate", "php artisan migrate -n", failure="Failed to run migrations")


def _check_database_service(context: RunContext, connection: DatabaseConnection) -> None:
    params = context.params
    name = "mysql_service_check" if params.database is DatabaseChoice.MYSQL else "postgres_service_check"
    where = f"{connection.host}:{connection.port}"
    if context.port_probe(connection.host, connection.port_number or params.database.default_port):
        context.record(name, EventStatus.SUCCESS, stdout=f"{params.db_label} detected on {where}")
    else:
        context.warn(
            name,
            f"Warning: no {params.db_label} service detected on {where}. "
            "Start it to avoid migration failures.",
        )


def two_factor(context: RunContext) -> None:
    project = _project(context)
    has_two_factor = patchers.detect_two_factor_columns(project)
    context.record(
        "detect_two_factor_migration",
        EventStatus.SUCCESS if has_two_factor else EventStatus.SKIPPED,
        stdout="2FA columns detected" if has_two_factor else "No 2FA columns detected",
    )
    if not has_two_factor:
        return
    _record_patch(context, "patch_user_factory_2fa", patchers.patch_user_factory_two_factor(project))


def filament(context: RunContext) -> None:
    admin = context.params.admin
    context.run_command(
        "composer_filament",
        "composer require filament/filament --with-all-dependencies -q -n",
        failure="Failed to install Filament",
    )
    context.run_command(
        "artisan_filament_install", "php artisan filament:install --panels -n -q", failure="Failed to configure Filament"
    )
    context.run_command(
        "artisan_filament_user",
        "php artisan make:filament-user"
        f" --name={shlex.quote(admin.name)}"
        f" --email={shlex.quote(admin.email)}"
        f" --password={shlex.quote(admin.password)}",
        failure="Failed to create the Filament user",
    )
    context.run_command(
        "artisan_filament_resource_user",
        "php artisan make:filament-resource User --generate -n -q",
        failure="Failed to create the User resource",
    )


def pest(context: RunContext) -> None:
    context.run_command(
        "pest_install",
        "php artisan pest:install -n -q || composer exec -q pest -- --init || vendor/bin/pest --init",
        failure="Failed to configure Pest",
    )


def dev_tools(context: RunContext) -> None:
    context.run_command(
        "composer_laravel_boost", "composer require laravel/boost --dev -q -n", failure="Failed to install Laravel Boost"
    )
    context.run_command(
        "artisan_boost_install", "php artisan boost:install -q -n", failure="Failed to configure Laravel Boost"
    )
    context.run_command(
        "composer_larastan", 'composer require "larastan/larastan:^3.0" --dev -q', failure="Failed to install Larastan"
    )
    _record_written(context, "write_phpstan_config", patchers.write_phpstan_config(_project(context)))
    context.run_command(
        "composer_debugbar", "composer require barryvdh/laravel-debugbar --dev -q", failure="Failed to install Debugbar"
    )
    context.run_command(
        "composer_laravel_lang", "composer require laravel-lang/common -q", failure="Failed to install Laravel Lang"
    )


def code_quality(context: RunContext) -> None:
    context.run_command("composer_pint", "composer require laravel/pint --dev -q", failure="Failed to install Pint")
    _record_written(context, "write_pint_config", patchers.write_pint_config(_project(context)))
    context.run_command("composer_rector", "composer require rector/rector --dev -q", failure="Failed to install Rector")
    _record_written(context, "write_rector_config", patchers.write_rector_config(_project(context)))


def essentials(context: RunContext) -> None:
    context.run_command(
        "composer_config_essentials_repo",
        "composer config repositories.essentials-fork vcs https://github.com/JhonMA82/essentials",
        failure="Failed to configure the Essentials repository",
    )
    context.run_command(
        "composer_essentials",
        "composer require nunomaduro/essentials:0.1.1 -q -n",
        failure="Failed to install Essentials",
    )
    context.run_command(
        "artisan_vendor_publish_essentials",
        "php artisan vendor:publish --tag=essentials-config -n -q",
        failure="Failed to publish the Essentials configuration",
    )


def frontend(context: RunContext) -> None:
    context.require_tool("node", "Node.js is not installed.")
    context.require_tool("npm", "npm is not installed.")
    context.run_command("npm_install", "npm install", failure="npm install failed")
    plugin = VITE_PLUGINS.get(context.params.starter_kit)
    if plugin is not None:
        event_name, package = plugin
        context.run_command(
            event_name, f"npm install {package} --save-dev", failure=f"Failed to install the Vite plugin {package}"
        )
    context.run_command("npm_run_build", "npm run build", failure="Failed to build assets with Vite")


def localization(context: RunContext) -> None:
    locale = shlex.quote(context.app_locale)
    context.run_command(
        "artisan_lang_add", f"php artisan lang:add {locale} -n -q", failure=f"Failed to add the {locale} language"
    )
    context.run_command("artisan_lang_update", "php artisan lang:update -q -n", failure="Failed to update translations")


def quality_checks(context: RunContext) -> None:
    outcome = patchers.patch_phpunit_xml(_project(context), locale=context.test_locale)
    _record_patch(context, "patch_phpunit_locale", outcome)
    context.run_command("phpstan", "php vendor/bin/phpstan", failure="PHPStan failed")
    context.run_command("pest", "php vendor/bin/pest", failure="Pest failed")
    context.run_command("pint", "php vendor/bin/pint", failure="Pint failed")
    context.run_command("rector", "php vendor/bin/rector process", failure="Rector failed")


def git(context: RunContext) -> None:
    context.run_command("git_add", "git add .", failure="git add failed")
    message = (
        f"Filament + {context.params.db_label} installed: "
        "initial phased setup with starter kit and tooling"
    )
    context.run_command("git_commit", f"git commit -m {shlex.quote(message)}", failure="git commit failed")


def build_install_steps() -> List[Step]:
    """Factory returning the ordered install steps."""
    return [
        Step("prechecks", "Prechecks", prechecks),
        Step("scaffold", "Project scaffold", scaffold),
        Step("database", "Database and environment", database),
        Step("two_factor", "2FA patch (UserFactory)", two_factor),
        Step("filament", "Filament", filament),
        Step("pest", "Tests (Pest)", pest),
        Step("dev_tools", "Development tools", dev_tools),
        Step("code_quality", "Code quality", code_quality),
        Step("essentials", "Essentials", essentials),
        Step("frontend", "Frontend (Node + Vite)", frontend),
        Step("localization", "Localization", localization),
        Step("quality_checks", "Tests and quality checks", quality_checks),
        Step("git", "Git", git),
    ]


def fetch_supabase_status(context: RunContext) -> Optional[dict]:
    """Return `npx supabase status` output for Supabase projects; never fatal."""
    if context.params.database is not DatabaseChoice.SUPABASE:
        return None
    result = context.runner.run("npx supabase status", cwd=context.cwd, env=context.env)
    logger.debug("supabase status exited with %s", result.return_code)
    return {"status": result.status, "stdout": result.stdout, "stderr": result.stderr}
