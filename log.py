import logging

from colorama import Fore, Style, init

init(autoreset=True, strip=False)

LOG_FORMAT = "[%(sim_time)s] %(name)s: %(message)s"

# Component colours, keyed by logger name
COMPONENT_COLORS = {
    "power_meter": Fore.YELLOW,
    "wms": Fore.GREEN,
    "job_scheduler": Fore.CYAN,
    "schedule": Fore.CYAN,
}


class ColoredFormatter(logging.Formatter):
    """Colours each record by the component that emitted it and stamps the simulated date."""

    def __init__(self, env=None, fmt=LOG_FORMAT):
        super().__init__(fmt)
        self.env = env

    def format(self, record):
        record.sim_time = f"{self.env.now:.2f}" if self.env is not None else "-"
        message = super().format(record)
        color = COMPONENT_COLORS.get(record.name.split(".")[0])
        if record.levelno >= logging.WARNING:
            color = Fore.RED
        if color is None:
            return message
        return f"{color}{message}{Style.RESET_ALL}"


def setup_logging(level=logging.INFO, env=None):
    """
    Install a single coloured console handler on the root logger.

    :param level: logging level for the root logger
    :param env: optional simpy environment, used to prefix records with the simulated date
    """
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    handler = logging.StreamHandler()
    handler.setFormatter(ColoredFormatter(env))
    root.addHandler(handler)
    root.setLevel(level)
    return handler
