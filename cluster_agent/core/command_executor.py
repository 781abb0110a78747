"""
Command Executor module: runs one shell command with a given standard input
and returns its captured standard output.
"""
import os
import subprocess
import threading
from typing import Optional, TYPE_CHECKING

import psutil

from cluster_agent.errors import DirectoryChangeFailure, ResourceExhaustion, SubprocessSpawnFailure
from cluster_agent.utils import get_logger

if TYPE_CHECKING:
    from cluster_agent.config import ConfigManager

logger = get_logger(__name__)

CHANGE_DIRECTORY_PREFIX = "cd "
DEFAULT_SHELL = "/bin/sh"
DEFAULT_ENCODING = "utf-8"
TERMINATE_WAIT_SEC = 3.0
OUTPUT_ERRORS = "surrogateescape"


class CommandExecutor:
    """
    Executes commands on the current node.

    ``cd <path>`` is handled in-process so it changes the working directory
    every later command runs in. Anything else runs through a shell with the
    request input as its entire standard input. Standard error is inherited
    from the agent and not captured.
    """

    def __init__(self, config: Optional['ConfigManager'] = None):
        """
        :param config: Configuration manager; defaults are used when None
        :type config: Optional[ConfigManager]
        """
        if config is not None:
            self.shell: str = config.get('executor.shell', DEFAULT_SHELL) or DEFAULT_SHELL
            self.output_encoding: str = config.get('executor.encoding', DEFAULT_ENCODING) or DEFAULT_ENCODING
        else:
            self.shell = DEFAULT_SHELL
            self.output_encoding = DEFAULT_ENCODING

        self._process: Optional[subprocess.Popen] = None
        self._process_lock = threading.Lock()
        logger.debug(f"CommandExecutor initialized with shell='{self.shell}', encoding='{self.output_encoding}'")

    def execute(self, input_text: str, command: str) -> str:
        """
        Executes ``command`` feeding ``input_text`` as its standard input.

        :param input_text: Text written to the command's standard input before it is closed
        :type input_text: str
        :param command: Shell command line
        :type command: str
        :return: Everything the command wrote to standard output
        :rtype: str
        :raises SubprocessSpawnFailure: If the shell cannot be started
        :raises ResourceExhaustion: If memory runs out while collecting the output
        """
        if command.startswith(CHANGE_DIRECTORY_PREFIX):
            self._change_directory(command[len(CHANGE_DIRECTORY_PREFIX):])
            return ""

        logger.info(f"Executing command: {command!r} (input {len(input_text)} chars)")
        try:
            process = subprocess.Popen(
                command,
                shell=True,
                executable=self.shell,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
            )
        except OSError as e:
            raise SubprocessSpawnFailure(f"Could not start '{command}' with {self.shell}: {e}") from e

        with self._process_lock:
            self._process = process
        try:
            # communicate() writes the input, closes stdin, then drains stdout
            raw_output, _ = process.communicate(input_text.encode(self.output_encoding, errors=OUTPUT_ERRORS))
        except MemoryError as e:
            process.kill()
            process.wait()
            raise ResourceExhaustion(f"Out of memory while capturing output of '{command}'") from e
        finally:
            with self._process_lock:
                self._process = None

        # Bytes mode: no newline translation, and undecodable bytes are kept as surrogate escapes
        output = (raw_output or b"").decode(self.output_encoding, errors=OUTPUT_ERRORS)
        logger.info(f"Command {command!r} finished. ExitCode={process.returncode}, Output={len(output)} chars")
        return output

    def _change_directory(self, path: str):
        try:
            os.chdir(path)
            logger.info(f"Working directory changed to {os.getcwd()}")
        except OSError as e:
            failure = DirectoryChangeFailure(f"Couldn't change directory to '{path}': {e}")
            logger.warning(str(failure))

    @property
    def is_running(self) -> bool:
        with self._process_lock:
            return self._process is not None and self._process.poll() is None

    def terminate_running(self) -> bool:
        """
        Kills the command currently executing, including every process the
        shell started.

        :return: True if a running command was terminated
        :rtype: bool
        """
        with self._process_lock:
            process = self._process
        if process is None or process.poll() is not None:
            return False

        try:
            parent = psutil.Process(process.pid)
            procs = parent.children(recursive=True) + [parent]
        except psutil.NoSuchProcess:
            return False

        logger.warning(f"Terminating running command (PID {process.pid}, {len(procs)} processes).")
        for proc in procs:
            try:
                proc.terminate()
            except psutil.NoSuchProcess:
                pass
        _, alive = psutil.wait_procs(procs, timeout=TERMINATE_WAIT_SEC)
        for proc in alive:
            try:
                proc.kill()
            except psutil.NoSuchProcess:
                pass
        return True
