"""Litestar plugin hosting the purge history timer.

This module provides the PurgeHistoryPlugin, which wires the purge job into a
Litestar application: it configures logging, creates the database session
factory, exposes the configuration and timer through dependency injection and
starts and stops the timer with the application.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from litestar.di import Provide
from litestar.plugins import InitPluginProtocol
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from litestar_purge_history.config import PurgeHistoryConfig
from litestar_purge_history.db.models import OrchestrationInstanceModel
from litestar_purge_history.log import setup_logging
from litestar_purge_history.timer import PurgeHistoryTimer

if TYPE_CHECKING:
    from litestar.config.app import AppConfig
    from sqlalchemy.ext.asyncio import AsyncEngine

__all__ = ["PurgeHistoryPlugin", "PurgeHistoryPluginConfig"]


@dataclass
class PurgeHistoryPluginConfig:
    """Configuration for the PurgeHistoryPlugin.

    Attributes:
        purge_config: Configuration of the purge job itself.
        session_maker: Optional pre-configured session factory. If not provided,
            an engine is created from ``purge_config.connection_string``.
        start_timer: Whether the timer is started on application startup.
            Defaults to True.
        configure_logging: Whether structlog is configured from ``purge_config``
            when the application is initialized. Defaults to True.
        create_tables: Whether the orchestration tables are created on startup.
            Intended for development databases. Defaults to False.
        dependency_key_config: The key used for dependency injection of the
            PurgeHistoryConfig. Defaults to "purge_history_config".
        dependency_key_timer: The key used for dependency injection of the
            PurgeHistoryTimer. Defaults to "purge_history_timer".
    """

    purge_config: PurgeHistoryConfig = field(default_factory=PurgeHistoryConfig)
    session_maker: async_sessionmaker[AsyncSession] | None = None
    start_timer: bool = True
    configure_logging: bool = True
    create_tables: bool = False
    dependency_key_config: str = "purge_history_config"
    dependency_key_timer: str = "purge_history_timer"


class PurgeHistoryPlugin(InitPluginProtocol):
    """Litestar plugin running the purge history job.

    Example:
        Host the job with settings taken from the environment::

            from litestar import Litestar
            from litestar_purge_history import PurgeHistoryConfig, PurgeHistoryPlugin, PurgeHistoryPluginConfig

            app = Litestar(
                plugins=[
                    PurgeHistoryPlugin(
                        config=PurgeHistoryPluginConfig(purge_config=PurgeHistoryConfig.from_env())
                    )
                ]
            )

        Triggering a cycle from a route handler::

            from litestar import post
            from litestar_purge_history import PurgeHistoryTimer


            @post("/purge-history/run")
            async def run_purge(purge_history_timer: PurgeHistoryTimer) -> None:
                await purge_history_timer.run_once()
    """

    __slots__ = ("_config", "_engine", "_session_maker", "_timer")

    def __init__(self, config: PurgeHistoryPluginConfig | None = None) -> None:
        """Initialize the plugin.

        Args:
            config: Optional configuration for the plugin.
        """
        self._config = config or PurgeHistoryPluginConfig()
        self._engine: AsyncEngine | None = None
        self._session_maker: async_sessionmaker[AsyncSession] | None = None
        self._timer: PurgeHistoryTimer | None = None

    @property
    def timer(self) -> PurgeHistoryTimer:
        """Get the purge timer.

        Returns:
            The PurgeHistoryTimer instance.

        Raises:
            RuntimeError: If accessed before plugin initialization.
        """
        if self._timer is None:
            msg = "PurgeHistoryPlugin has not been initialized. Access timer after app startup."
            raise RuntimeError(msg)
        return self._timer

    def on_app_init(self, app_config: AppConfig) -> AppConfig:
        """Initialize the plugin when the Litestar app starts.

        This method:
        1. Configures structlog, unless disabled
        2. Creates or uses the provided session factory
        3. Creates the PurgeHistoryTimer
        4. Adds dependency providers to the app config
        5. Registers startup and shutdown hooks for the timer

        Args:
            app_config: The Litestar application configuration.

        Returns:
            The modified application configuration.
        """
        purge_config = self._config.purge_config

        if self._config.configure_logging:
            setup_logging(level=purge_config.log_level, format=purge_config.log_format)

        self._session_maker = self._config.session_maker or self._create_session_maker(purge_config)
        self._timer = PurgeHistoryTimer(purge_config, self._session_maker)

        def provide_config() -> PurgeHistoryConfig:
            return purge_config

        def provide_timer() -> PurgeHistoryTimer:
            return self._timer  # type: ignore[return-value]

        app_config.dependencies[self._config.dependency_key_config] = Provide(
            provide_config,
            sync_to_thread=False,
        )
        app_config.dependencies[self._config.dependency_key_timer] = Provide(
            provide_timer,
            sync_to_thread=False,
        )

        app_config.on_startup.append(self._on_startup)
        app_config.on_shutdown.append(self._on_shutdown)

        return app_config

    def _create_session_maker(self, purge_config: PurgeHistoryConfig) -> async_sessionmaker[AsyncSession]:
        self._engine = create_async_engine(purge_config.connection_string)
        return async_sessionmaker(bind=self._engine, class_=AsyncSession, expire_on_commit=False)

    async def _on_startup(self) -> None:
        if self._config.create_tables:
            engine = self._engine or self.session_bind()
            async with engine.begin() as conn:
                await conn.run_sync(OrchestrationInstanceModel.metadata.create_all)

        if self._config.start_timer:
            self.timer.start()

    async def _on_shutdown(self) -> None:
        await self.timer.shutdown()
        if self._engine is not None:
            await self._engine.dispose()

    def session_bind(self) -> AsyncEngine:
        """Return the engine the session factory is bound to.

        Raises:
            RuntimeError: If the plugin is not initialized or the factory is unbound.
        """
        bind = self._session_maker.kw.get("bind") if self._session_maker else None
        if bind is None:
            msg = "PurgeHistoryPlugin session factory is not bound to an engine."
            raise RuntimeError(msg)
        return bind
