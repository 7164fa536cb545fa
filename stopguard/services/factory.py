"""
Service Factory

Builds the position services and their collaborators from Settings.
"""

from dataclasses import dataclass
from typing import Optional

from stopguard.config.settings import Settings, get_settings
from stopguard.core.database import close_mongodb_connection, connect_to_mongodb
from stopguard.integrations.brokers.alpaca_trading import AlpacaTradingGateway
from stopguard.integrations.brokers.base import OrderExecutionGateway
from stopguard.integrations.market_data.alpaca_data import AlpacaMarketDataProvider
from stopguard.integrations.market_data.base import MarketDataProvider
from stopguard.repositories.base import PositionStore
from stopguard.repositories.managed_position_repository import ManagedPositionRepository
from stopguard.repositories.memory import InMemoryPositionStore
from stopguard.services.position_locks import PositionLockRegistry
from stopguard.services.position_manager import PositionManagerService
from stopguard.services.position_monitor import PositionMonitorService
from stopguard.core.logger import get_logger

logger = get_logger(__name__)


@dataclass
class PositionServices:
    """Wired engine: store, collaborators, and the two services"""
    store: PositionStore
    market_data: MarketDataProvider
    gateway: OrderExecutionGateway
    manager: PositionManagerService
    monitor: PositionMonitorService
    uses_mongodb: bool = False
    
    async def aclose(self) -> None:
        """Release HTTP clients and the database connection."""
        await self.market_data.close()
        await self.gateway.close()
        if self.uses_mongodb:
            await close_mongodb_connection()


def build_services(
    store: PositionStore,
    market_data: MarketDataProvider,
    gateway: OrderExecutionGateway,
    settings: Optional[Settings] = None
) -> PositionServices:
    """Wire services around explicit collaborators."""
    settings = settings or get_settings()
    locks = PositionLockRegistry()
    
    manager = PositionManagerService(
        store=store,
        market_data=market_data,
        gateway=gateway,
        locks=locks,
        close_max_attempts=settings.CLOSE_MAX_ATTEMPTS,
        close_retry_delay=settings.CLOSE_RETRY_DELAY_SECONDS,
    )
    monitor = PositionMonitorService(
        store=store,
        market_data=market_data,
        manager=manager,
        max_concurrency=settings.MONITOR_MAX_CONCURRENCY,
        price_timeout=settings.PRICE_FETCH_TIMEOUT_SECONDS,
    )
    
    return PositionServices(
        store=store,
        market_data=market_data,
        gateway=gateway,
        manager=manager,
        monitor=monitor,
    )


async def create_services(
    settings: Optional[Settings] = None,
    in_memory: bool = False
) -> PositionServices:
    """
    Build services backed by Alpaca and MongoDB.
    
    Args:
        settings: Settings (defaults to get_settings())
        in_memory: Keep positions in process memory instead of MongoDB
            (single-process paper runs; records are lost on exit)
    
    Raises:
        RuntimeError: If MONGODB_URL is not configured and in_memory is False
    """
    settings = settings or get_settings()
    
    if not in_memory:
        if not settings.MONGODB_URL:
            raise RuntimeError(
                "MONGODB_URL is not configured; managed positions need a persistent store"
            )
        db = await connect_to_mongodb()
        repository = ManagedPositionRepository(db, settings.MANAGED_POSITIONS_COLLECTION)
        await repository.ensure_indexes()
        store: PositionStore = repository
    else:
        logger.warning("Managed positions are kept in memory and lost when the process exits")
        store = InMemoryPositionStore()
    
    market_data = AlpacaMarketDataProvider(
        api_key=settings.ALPACA_API_KEY,
        secret_key=settings.ALPACA_SECRET_KEY,
        base_url=settings.ALPACA_DATA_URL,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
    )
    gateway = AlpacaTradingGateway(
        api_key=settings.ALPACA_API_KEY,
        secret_key=settings.ALPACA_SECRET_KEY,
        paper=settings.ALPACA_PAPER,
        base_url=settings.alpaca_trading_url,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
    )
    
    services = build_services(store, market_data, gateway, settings)
    services.uses_mongodb = not in_memory
    return services
