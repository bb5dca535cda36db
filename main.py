from dataclasses import dataclass, field

from cfgbind import *


@dataclass
class Config:
    name: str = field(default="", metadata={"flag": "required", "usage": "person to greet"})
    weather: str = field(default="nice", metadata={"param": "w", "usage": "how's the weather?"})


def greet(config, command, args):
    print(f"Hello, {config.name}!")
    print(f"The weather looks {config.weather} today!")


if __name__ == '__main__':
    invoke(root_command(
        run(greet),
        Config(),
        "cfgbind-greet --name <name> [-w <weather>]",
        descr="say hello, configured from flags or CFGBIND_GREET_* variables",
        shell=True,
        colorful=True,
    ))
