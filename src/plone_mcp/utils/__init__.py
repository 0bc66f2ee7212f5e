from .ids import new_block_id

__all__ = [
    "new_block_id",
]
