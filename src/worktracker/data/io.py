import tempfile, yaml, os, stat
from typing import Union, Dict, Any, Optional
from pathlib import Path
from worktracker.recovery import CorruptionError, FileOperationError, FatalError
from worktracker.logs import get_logger

log = get_logger("io")

def _cleanup(temp_path: Optional[str]):
    if temp_path is None or not os.path.exists(temp_path):
        return
    try:
        os.unlink(temp_path)
        log.debug(f"Cleaned up temporary file: {temp_path}")
    except OSError as cleanup_error:
        # Don't mask the original error, just log
        log.warning(f"Could not clean up temp file {temp_path}: {cleanup_error}")

def _create_dirs(file_path : Path):
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
    except (OSError, PermissionError) as e:
        error_msg = f"Cannot create directory {file_path.parent}: {e}"
        log.error(error_msg)
        raise FileOperationError(error_msg) from e

def atomic_write(file_path : Union[Path, str], data : Dict[str, Any], create_dirs : bool = False):
    """
    Serialize and save data to a YAML file using atomic updates.

    The data is written to a temporary file next to the target, which then
    replaces the target in a single step. Readers see either the old or the
    new file, never a partial one.
    """
    file_path = Path(file_path)
    temp_path = None

    try:
        if create_dirs:
            _create_dirs(file_path)

        # Temporary file in the same directory as target for atomicity
        with tempfile.NamedTemporaryFile(mode='w', encoding='utf-8', dir=file_path.parent, prefix=f".{file_path.name}.", suffix='.tmp', delete=False) as temp_file:
            temp_path = temp_file.name
            yaml.safe_dump(data, temp_file, default_flow_style=None, sort_keys=False, indent=2, allow_unicode=True)
            temp_file.flush()
            os.fsync(temp_file.fileno())

        # Temp files are created 0600, keep the mode of the file being replaced
        if file_path.exists():
            os.chmod(temp_path, stat.S_IMODE(file_path.stat().st_mode))
        os.replace(temp_path, file_path)
        log.debug(f"Successfully saved YAML file: {file_path}")

    except FileOperationError:
        raise

    except (yaml.YAMLError, TypeError) as e:
        _cleanup(temp_path)
        # FATAL ERROR: Data cannot be serialized
        error_msg = (f"Data serialization failed for {file_path}. "
                    f"In-memory data may be corrupt or contain non-serializable types: {e}")
        log.critical(error_msg)
        raise FatalError(error_msg) from e

    except OSError as e:
        _cleanup(temp_path)
        # RECOVERABLE ERROR: I/O issues
        error_msg = f"I/O error saving YAML file {file_path}: {e}"
        log.error(error_msg)
        raise FileOperationError(error_msg) from e

def load_yaml_file(file_path : Union[Path, str]) -> Union[None, Dict[str, Any]]:
    """
    Load and parse a YAML file.

    Args:
        file_path: Path to the YAML file

    Returns:
        Parsed data as dict, or None if the file doesn't exist

    Raises:
        CorruptionError: The file is not valid YAML or does not hold a mapping
        FileOperationError: The file exists but cannot be read
    """
    file_path = Path(file_path)
    if not file_path.exists():
        return None

    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)

    except yaml.YAMLError as e:
        # YAML syntax errors are fatal (corrupted file)
        raise CorruptionError(f"YAML syntax error in {file_path}: {e}") from e
    except UnicodeDecodeError as e:
        raise CorruptionError(f"File {file_path} is not valid UTF-8 text: {e}") from e
    except OSError as e:
        raise FileOperationError(f"Failed to read file {file_path}: {e}") from e

    # Basic sanity check for data corruption
    if not isinstance(data, dict):
        raise CorruptionError(f"File {file_path} contains invalid data structure")

    return data
