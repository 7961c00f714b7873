from enum import Enum


class CronSchedule(Enum):
    """
    CRON expressions for the background jobs
    """
    EVERY_5_MINUTES = "*/5 * * * *"
    EVERY_15_MINUTES = "*/15 * * * *"
    EVERY_30_MINUTES = "*/30 * * * *"
    EVERY_HOUR = "0 * * * *"
    DAILY_MIDNIGHT = "0 0 * * *"

    def __str__(self) -> str:
        """Returns the CRON expression as a string"""
        return self.value

    @staticmethod
    def from_name(name: str) -> str:
        """
        Gets a CRON expression from its name

        Args:
            name: Name of the expression (e.g.: "EVERY_30_MINUTES")

        Returns:
            str: CRON expression

        Raises:
            ValueError: If the name doesn't exist
        """
        try:
            return str(CronSchedule[name.upper()])
        except KeyError:
            valid_names = [s.name for s in CronSchedule]
            raise ValueError(
                f"Invalid CRON expression name. Options: {', '.join(valid_names)}")
