"""Entry point for running the application with uvicorn."""

import uvicorn

from attendance_payroll.config import get_settings
from attendance_payroll.run_log import configure_logging


def main() -> None:
    """Run the application."""
    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(
        "attendance_payroll.api.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
