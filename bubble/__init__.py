"""bubble: container churn controller.

Single-node chaos tool that, on a fixed interval:
 - selects the containers running a given image
 - clones one of them a configurable number of times
 - stops and removes a configurable number of them

The up:down ratio drives how much churn each tick produces.
"""

__version__ = "0.1.0"
