"""
Pack archive recovery.

Pack resolvers turn a downloaded pack archive into loose objects:
- DulwichPackResolver: inflates the pack in-process with dulwich
- GitUnpackResolver: pipes the pack into "git unpack-objects"
"""
from gitreclaim.packs.recovery import PackRecovery, PackRecoveryResult
from gitreclaim.packs.resolvers import (
    DulwichPackResolver,
    GitUnpackResolver,
    PackResolver,
    build_resolver,
)

__all__ = [
    'PackRecovery',
    'PackRecoveryResult',
    'PackResolver',
    'DulwichPackResolver',
    'GitUnpackResolver',
    'build_resolver',
]
