"""
Curtain - Truth/theatre state synchronization for turn-based games.

Game logic mutates the authoritative ("truth") element tree immediately,
while renderers read a lagged ("theatre") view that only advances when
animation events are acknowledged. The engine provides:
- A serializable command model with undo
- Mutation capture for game.animate() callbacks
- An acknowledgeable animation event buffer
- The theatre state engine and full save/restore
"""

__version__ = "0.1.0"
