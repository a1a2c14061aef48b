import os
import signal
import shutil
import subprocess
import sys


def which(command):
    """Locate an executable on PATH, returning its path or None."""
    return shutil.which(command)


def get_clean_subprocess_env(extra_env=None):
    """
    Returns a copy of os.environ with bundled-runtime variables removed.
    Optionally merges in extra_env dict.
    CRITICAL: Preserves system PATH so tools like cabextract and 7z stay reachable.
    """
    env = os.environ.copy()

    # AppImage / PyInstaller variables make child processes think they are a new bundle launch
    for key in ['APPIMAGE', 'APPDIR', 'ARGV0', 'OWD']:
        env.pop(key, None)
    for k in list(env):
        if k.startswith('_MEIPASS'):
            del env[k]

    # Ensure common system directories are in PATH if not already present
    current_path = env.get('PATH', '')
    path_parts = current_path.split(':') if current_path else []
    for sys_path in ['/usr/bin', '/usr/local/bin', '/bin', '/sbin', '/usr/sbin']:
        if sys_path not in path_parts and os.path.isdir(sys_path):
            path_parts.append(sys_path)

    seen = set()
    final_path_parts = []
    for path_part in path_parts:
        if path_part and path_part not in seen:
            final_path_parts.append(path_part)
            seen.add(path_part)
    env['PATH'] = ':'.join(final_path_parts)

    if extra_env:
        env.update(extra_env)
    return env


class ProcessManager:
    """
    Detached child in its own session, used for long-lived helpers such as a
    persistent wineserver. Output is discarded; the whole process group can
    be torn down with cancel().
    """
    def __init__(self, cmd, env=None, cwd=None):
        self.cmd = [str(part) for part in cmd]
        self.env = env if env is not None else get_clean_subprocess_env()
        self.cwd = cwd
        self.proc = None
        self.process_group_pid = None
        self._start_process()

    def _start_process(self):
        self.proc = subprocess.Popen(
            self.cmd,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            stdin=subprocess.DEVNULL,
            env=self.env,
            cwd=self.cwd,
            start_new_session=True
        )
        try:
            self.process_group_pid = os.getpgid(self.proc.pid)
        except OSError:
            self.process_group_pid = None

    def cancel(self, timeout_terminate=2, timeout_kill=1):
        """Terminate the process, escalating to SIGKILL on its process group."""
        if not self.proc or self.proc.poll() is not None:
            return
        self.proc.terminate()
        try:
            self.proc.wait(timeout=timeout_terminate)
            return
        except subprocess.TimeoutExpired:
            pass
        self.proc.kill()
        try:
            self.proc.wait(timeout=timeout_kill)
            return
        except subprocess.TimeoutExpired:
            pass
        if self.process_group_pid:
            try:
                os.killpg(self.process_group_pid, signal.SIGKILL)
            except ProcessLookupError:
                pass

    def is_running(self):
        return self.proc is not None and self.proc.poll() is None

    def wait(self, timeout=None):
        if self.proc:
            return self.proc.wait(timeout=timeout)
        return None


def stream_is_tty(stream=None):
    stream = stream or sys.stdout
    return hasattr(stream, "isatty") and stream.isatty()
