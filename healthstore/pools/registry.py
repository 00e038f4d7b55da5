"""
Research pool registry
Entity-owned, reward-bearing research pools
"""

from typing import TYPE_CHECKING, List, Optional
import structlog

from .models import PoolStatus, ResearchPool
from ..events import PoolCreated, PoolDeleted, PoolUpdated
from ..exceptions import PoolNotFound
from ..identity import IdentityComparator

if TYPE_CHECKING:
    from ..state import Transaction

logger = structlog.get_logger(__name__)


class ResearchPoolRegistry:
    """Owns the entity id -> ResearchPool map. An entity has at most one pool."""

    def __init__(self, comparator: Optional[IdentityComparator] = None):
        self.comparator = comparator or IdentityComparator()

    def owned_pool(self, tx: "Transaction", entity_id: str, action: str) -> ResearchPool:
        """Look up a pool and require the caller to be the owning entity"""
        pool = tx.state.research_pools.get(entity_id)
        if pool is None:
            raise PoolNotFound(entity_id)
        self.comparator.require(tx.caller, pool.entity_id,
                                resource=f"research pool {entity_id}", action=action)
        return pool

    def create(self, tx: "Transaction", entity_id: str, title: str,
               description: str, reward_amount: int) -> ResearchPool:
        """Create or overwrite the pool of an entity, starting active"""
        pool = ResearchPool(
            entity_id=entity_id,
            title=title,
            description=description,
            reward_amount=reward_amount,
            created_at=tx.now,
            status=PoolStatus.ACTIVE.value,
        )
        tx.state.research_pools[entity_id] = pool
        tx.touch()
        tx.emit(PoolCreated(entity_id=entity_id, title=title, reward_amount=reward_amount))

        logger.info("Created research pool", entity_id=entity_id, title=title,
                    reward_amount=reward_amount)
        return pool

    def get(self, tx: "Transaction", entity_id: str) -> Optional[ResearchPool]:
        return tx.state.research_pools.get(entity_id)

    def update(self, tx: "Transaction", entity_id: str,
               title: Optional[str] = None,
               description: Optional[str] = None,
               reward_amount: Optional[int] = None,
               status: Optional[str] = None) -> ResearchPool:
        """Overwrite the given fields of an owned pool, leaving the others unchanged"""
        pool = self.owned_pool(tx, entity_id, "update")

        if title is not None:
            pool.title = title
        if description is not None:
            pool.description = description
        if reward_amount is not None:
            pool.reward_amount = reward_amount
        if status is not None:
            pool.status = status

        tx.touch()
        tx.emit(PoolUpdated(entity_id=entity_id, title=pool.title))

        logger.info("Updated research pool", entity_id=entity_id, title=pool.title,
                    status=pool.status)
        return pool

    def delete(self, tx: "Transaction", entity_id: str) -> ResearchPool:
        """Remove an owned pool. Its submissions are kept."""
        pool = self.owned_pool(tx, entity_id, "delete")
        del tx.state.research_pools[entity_id]
        tx.touch()
        tx.emit(PoolDeleted(entity_id=entity_id, title=pool.title))

        logger.info("Deleted research pool", entity_id=entity_id, title=pool.title)
        return pool

    def list_active(self, tx: "Transaction") -> List[ResearchPool]:
        """Active pools, newest first; equal timestamps keep insertion order"""
        active = [pool for pool in tx.state.research_pools.values() if pool.is_active()]
        active.sort(key=lambda pool: pool.created_at, reverse=True)
        logger.debug("Listed active research pools", count=len(active))
        return active
