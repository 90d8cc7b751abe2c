"""Activity variants.

Each variant owns its phase timeline and ephemeral state and talks to the
rest of the system only through the state store, the transport and the
scheduler it is constructed with.
"""

from .ar import ARHunt
from .base import ActivityVariant, Phase
from .beats import Beats
from .energizer import Energizer
from .instruments import Instruments
from .lobby import Lobby

__all__ = ['ActivityVariant', 'ARHunt', 'Beats', 'Energizer', 'Instruments', 'Lobby', 'Phase']
