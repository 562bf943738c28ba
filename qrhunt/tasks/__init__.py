"""Background tasks."""
from qrhunt.tasks.presence_sweep import run_presence_sweep, schedule_presence_sweep
from qrhunt.tasks.session_cleanup import run_session_cleanup, schedule_session_cleanup

__all__ = ['run_presence_sweep', 'schedule_presence_sweep', 'run_session_cleanup', 'schedule_session_cleanup']
