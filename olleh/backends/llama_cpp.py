# Copyright 2025 Olleh Contributors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Live backend driving a local llama.cpp CLI executable."""
import codecs
import logging
import os
import subprocess
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional

from .base import GenerationBackend
from ..core.exceptions import AdapterLoadError, BackendUnavailableError, GenerationError
from ..core.schemas import GenerationParameters, ModelDescriptor, ModelDetails

logger = logging.getLogger(__name__)

MODEL_NAME = 'default'
ADAPTER_SUFFIX = '.gguf'


class LlamaCppBackend(GenerationBackend):
    """Serves a single GGUF model through ``llama-cli``.

    Every generation runs one llama.cpp process. Only one process runs at a
    time; concurrent callers wait for the generation slot.
    """

    def __init__(self, llama_cli_path: Optional[str], model_path: Optional[Path], context_size: int = 4096,
                 threads: Optional[int] = None, gpu_layers: int = -1, timeout: float = 30 * 60):
        self.llama_cli_path = llama_cli_path
        self.model_path = Path(model_path) if model_path else None
        self.context_size = context_size
        self.threads = threads or os.cpu_count() or 4
        self.gpu_layers = gpu_layers
        self.timeout = timeout
        self.adapter_path: Optional[str] = None
        self._slot = threading.Lock()

    def is_available(self) -> bool:
        return (bool(self.llama_cli_path) and os.access(self.llama_cli_path, os.X_OK)
                and self.model_path is not None and self.model_path.is_file())

    def _check_availability(self) -> None:
        if not self.is_available():
            raise BackendUnavailableError(
                f"llama.cpp backend is not available (executable: {self.llama_cli_path or 'not found'}, "
                f"model: {self.model_path})"
            )

    def prewarm(self) -> None:
        try:
            self.generate(MODEL_NAME, "Hello", GenerationParameters(max_tokens=1))
            logger.info("Backend prewarmed")
        except Exception as e:
            logger.debug(f"Prewarm failed, continuing without it: {e}")

    def list_models(self) -> List[ModelDescriptor]:
        modified = datetime.now(timezone.utc)
        if self.model_path is not None:
            try:
                modified = datetime.fromtimestamp(self.model_path.stat().st_mtime, tz=timezone.utc)
            except OSError:
                logger.debug(f"Cannot stat model file {self.model_path}")

        return [ModelDescriptor(
            name=MODEL_NAME,
            digest='',
            size=0,
            modified_at=modified.isoformat(),
            details=ModelDetails(
                format='gguf',
                family='llama',
                families=('llama',),
                parameter_size='unknown',
                quantization_level='unknown',
            ),
            capabilities=('completion',),
            license='See model card',
            temperature=0.8,
            context_length=self.context_size,
            embedding_length=0,
        )]

    def load_adapter(self, path: str) -> None:
        adapter = Path(path)
        if not adapter.is_file():
            raise AdapterLoadError(f"Adapter file not found: {path}")
        if adapter.suffix != ADAPTER_SUFFIX:
            raise AdapterLoadError(f"Adapter file must have {ADAPTER_SUFFIX} extension")
        self.adapter_path = str(adapter)
        logger.info(f"Loaded LoRA adapter: {self.adapter_path}")

    def build_command(self, prompt_file_path: str, parameters: GenerationParameters) -> List[str]:
        """Build the llama.cpp command line; unset parameters keep llama.cpp defaults."""
        cmd = [
            self.llama_cli_path, "-m", str(self.model_path), "-f", prompt_file_path,
            "-c", str(self.context_size), "-t", str(self.threads),
            "-ngl", str(self.gpu_layers),
            "--no-display-prompt",  # Avoids llama.cpp printing the prompt back
            "-no-cnv",  # Exit after processing the prompt
        ]
        if parameters.temperature is not None:
            cmd.extend(["--temp", str(parameters.temperature)])
        if parameters.top_p is not None:
            cmd.extend(["--top-p", str(parameters.top_p)])
        if parameters.max_tokens is not None:
            cmd.extend(["-n", str(parameters.max_tokens)])
        if parameters.seed is not None:
            cmd.extend(["-s", str(parameters.seed)])
        if parameters.stop:
            cmd.extend(["-r", parameters.stop])
        if self.adapter_path:
            cmd.extend(["--lora", self.adapter_path])
        return cmd

    def _write_prompt_file(self, prompt: str) -> str:
        with tempfile.NamedTemporaryFile(mode='w', delete=False, encoding='utf-8', suffix=".txt") as temp_prompt_file:
            temp_prompt_file.write(prompt)
            return temp_prompt_file.name

    @staticmethod
    def _remove_prompt_file(prompt_file_path: str) -> None:
        try:
            os.unlink(prompt_file_path)
        except OSError as unlink_err:
            logger.error(f"Error unlinking temp prompt file {prompt_file_path}: {unlink_err}")

    def generate(self, model: str, prompt: str, parameters: GenerationParameters) -> str:
        self._check_availability()
        with self._slot:
            prompt_file_path = self._write_prompt_file(prompt)
            try:
                cmd = self.build_command(prompt_file_path, parameters)
                logger.debug(f"Executing (non-stream): {' '.join(cmd)}")
                try:
                    process = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
                except OSError as e:
                    raise GenerationError(f"Failed to start llama.cpp process: {e}")

                try:
                    stdout_data, stderr_data = process.communicate(timeout=self.timeout)
                except subprocess.TimeoutExpired:
                    process.kill()
                    process.communicate()
                    raise GenerationError(f"llama.cpp timed out after {self.timeout:.0f}s")

                output = stdout_data.decode('utf-8', errors='replace')
                if process.returncode != 0:
                    stderr_text = stderr_data.decode('utf-8', errors='replace').strip()
                    raise GenerationError(
                        f"llama.cpp exited with code {process.returncode}: {stderr_text[-500:]}"
                    )
                logger.debug(f"Non-streaming generation completed. Output len: {len(output)}")
                return output
            finally:
                self._remove_prompt_file(prompt_file_path)

    def stream_generate(self, model: str, prompt: str, parameters: GenerationParameters) -> Iterator[str]:
        self._check_availability()
        return self._stream(prompt, parameters)

    def _stream(self, prompt: str, parameters: GenerationParameters) -> Iterator[str]:
        with self._slot:
            prompt_file_path = self._write_prompt_file(prompt)
            process = None
            try:
                cmd = self.build_command(prompt_file_path, parameters)
                logger.debug(f"Executing (stream): {' '.join(cmd)}")
                try:
                    process = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
                except OSError as e:
                    raise GenerationError(f"Failed to start llama.cpp process: {e}")

                stderr_lines: List[str] = []

                def _drain_stderr():
                    for line in process.stderr:
                        stderr_lines.append(line.decode('utf-8', errors='replace').strip())
                        if len(stderr_lines) > 20:
                            stderr_lines.pop(0)

                stderr_thread = threading.Thread(target=_drain_stderr, daemon=True)
                stderr_thread.start()

                decoder = codecs.getincrementaldecoder('utf-8')(errors='replace')
                while True:
                    data = process.stdout.read1(4096)
                    if not data:
                        break
                    text = decoder.decode(data)
                    if text:
                        yield text
                tail = decoder.decode(b'', final=True)
                if tail:
                    yield tail

                try:
                    process.wait(timeout=10)
                except subprocess.TimeoutExpired:
                    logger.warning("Timeout waiting for llama.cpp to exit after stdout closed. Killing.")
                    process.kill()
                    process.wait()
                stderr_thread.join(timeout=2.0)

                if process.returncode != 0:
                    raise GenerationError(
                        f"llama.cpp exited with code {process.returncode}. Last stderr: {' | '.join(stderr_lines)}"
                    )
            finally:
                if process is not None and process.poll() is None:
                    process.kill()
                    process.wait()
                self._remove_prompt_file(prompt_file_path)


def find_llama_executable(llama_cpp_dir: Path) -> Optional[str]:
    """Find the llama.cpp CLI executable in a build directory, or None."""
    common_names = ['llama-cli', 'llama.cpp', 'main', 'llama']
    search_dirs = [
        llama_cpp_dir,
        llama_cpp_dir / 'bin',
        llama_cpp_dir / 'build/bin',
        llama_cpp_dir / 'build',
    ]

    for search_dir in search_dirs:
        if not search_dir.is_dir():
            continue
        for exe_name in common_names:
            exe_path = search_dir / exe_name
            if exe_path.is_file() and os.access(exe_path, os.X_OK):
                logger.info(f"Found llama.cpp executable: {exe_path}")
                return str(exe_path)

    if not llama_cpp_dir.is_dir():
        logger.warning(f"llama.cpp directory does not exist: {llama_cpp_dir}")
        return None

    logger.debug(f"Common llama.cpp executable paths not found, starting deep search in {llama_cpp_dir}...")
    for root, _, files in os.walk(llama_cpp_dir):
        for file_name in files:
            if file_name in common_names:
                exec_path = Path(root) / file_name
                if exec_path.is_file() and os.access(exec_path, os.X_OK):
                    logger.info(f"Found llama.cpp executable via deep search: {exec_path}")
                    return str(exec_path)

    logger.warning(f"Could not find llama.cpp executable (tried {', '.join(common_names)}) in {llama_cpp_dir}")
    return None
