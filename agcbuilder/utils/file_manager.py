import os
import requests
import zipfile
import tarfile
import shutil
import contextlib
from ..cli_logger import logger

# -------------------- Helpers: safe paths & extraction --------------------

def _safe_join(base, *paths):
    """Safely join paths, preventing path traversal attacks."""
    base = os.path.abspath(base)
    final = os.path.abspath(os.path.join(base, *paths))
    if not final.startswith(base + os.sep) and final != base:
        raise IOError(f"Unsafe path detected: {final}")
    return final

def _safe_extract_zip(zip_ref: zipfile.ZipFile, dest_dir: str):
    """Safely extract a zip file, preventing zip slip attacks."""
    for member in zip_ref.infolist():
        target_path = _safe_join(dest_dir, member.filename)
        if member.is_dir():
            os.makedirs(target_path, exist_ok=True)
            continue
        os.makedirs(os.path.dirname(target_path), exist_ok=True)
        with zip_ref.open(member, 'r') as src, open(target_path, 'wb') as out:
            shutil.copyfileobj(src, out)
        # Preserve file permissions
        mode = member.external_attr >> 16
        if mode:
            os.chmod(target_path, mode)

def _safe_extract_tar(tar_ref: tarfile.TarFile, dest_dir: str):
    """Safely extract a tar file, preventing path traversal attacks."""
    for member in tar_ref.getmembers():
        member_path = _safe_join(dest_dir, member.name)
        if member.isdir():
            os.makedirs(member_path, exist_ok=True)
            continue
        os.makedirs(os.path.dirname(member_path), exist_ok=True)
        src = tar_ref.extractfile(member)
        if src is None:
            # links and special files
            continue
        with src as src_file:
            with open(member_path, "wb") as out:
                shutil.copyfileobj(src_file, out)
        if member.mode:
            os.chmod(member_path, member.mode)


def _hoist_single_root(dest_dir):
    """If an archive unpacked into one top-level directory, move its contents up."""
    entries = os.listdir(dest_dir)
    if len(entries) != 1:
        return
    root = os.path.join(dest_dir, entries[0])
    if not os.path.isdir(root):
        return
    for item in os.listdir(root):
        shutil.move(os.path.join(root, item), os.path.join(dest_dir, item))
    os.rmdir(root)


def extract(filepath, dest_dir):
    """Extracts an archive file to a destination directory.

    Returns the destination directory, or None when the archive could not be
    unpacked.
    """
    os.makedirs(dest_dir, exist_ok=True)
    filename = os.path.basename(filepath)

    try:
        if tarfile.is_tarfile(filepath):
            with tarfile.open(filepath, 'r:*') as tar:
                _safe_extract_tar(tar, dest_dir)
        elif zipfile.is_zipfile(filepath):
            with zipfile.ZipFile(filepath, 'r') as zip_ref:
                _safe_extract_zip(zip_ref, dest_dir)
        else:
            logger.warning(f"Unsupported archive type for {filename}. Skipping extraction.")
            return None
    except (zipfile.BadZipFile, tarfile.TarError, IOError) as e:
        logger.error(f"Error during extraction: {e}")
        return None

    with contextlib.suppress(OSError):
        os.remove(filepath)

    _hoist_single_root(dest_dir)
    logger.success(f"Successfully extracted to {dest_dir}")
    return dest_dir

# -------------------- Download & Extract --------------------

def download_and_extract(url, dest_dir, filename=None, timeout=60):
    """Download an archive next to ``dest_dir`` and extract it into ``dest_dir``."""
    parent = os.path.dirname(os.path.abspath(dest_dir))
    os.makedirs(parent, exist_ok=True)
    if filename is None:
        filename = url.split('/')[-1]
    filepath = os.path.join(parent, filename)
    temp_filepath = filepath + ".tmp"

    try:
        with requests.get(url, stream=True, timeout=timeout) as r:
            r.raise_for_status()
            total_size = int(r.headers.get('content-length', 0))

            with open(temp_filepath, 'wb') as f:
                chunks = logger.progress(
                    r.iter_content(chunk_size=1024 * 256),
                    description=f"Downloading {filename}",
                    total=total_size,
                )
                for chunk in chunks:
                    if chunk:  # keep-alive chunks may be empty
                        f.write(chunk)

        # Atomic rename
        os.replace(temp_filepath, filepath)
    except requests.exceptions.RequestException as e:
        logger.error(f"Error downloading {url}: {e}")
        with contextlib.suppress(OSError):
            if os.path.exists(temp_filepath):
                os.remove(temp_filepath)
        return None

    logger.step_info(f"Archive:  {filename}")
    return extract(filepath, dest_dir)
