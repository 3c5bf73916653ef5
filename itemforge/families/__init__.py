"""Item families, keyed by the name used on the command line."""

from itemforge.families.chest import ChestGenerator
from itemforge.families.lantern import LanternGenerator
from itemforge.families.mount_gear import MountGearGenerator
from itemforge.families.potion import PotionGenerator

FAMILIES = {
    "lantern": LanternGenerator,
    "chest": ChestGenerator,
    "potion": PotionGenerator,
    "mount_gear": MountGearGenerator,
}


def get_generator(family: str, **kwargs):
    try:
        cls = FAMILIES[family]
    except KeyError:
        raise ValueError(f"Unknown family '{family}'; expected one of: {', '.join(FAMILIES)}") from None
    return cls(**kwargs)
