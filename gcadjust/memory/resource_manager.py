"""
Resource Manager for gcadjust

This module detects available memory and CPUs so that an adjustment run can
size its working buffers and its compression workers before doing any work.
"""

import logging
import os
from pathlib import Path
from typing import Any

import psutil

logger = logging.getLogger(__name__)


class ResourceManager:
    """
    Run-wide resource manager that:
    1. Detects actual system memory from config, SLURM, PBS, cgroups, or psutil
    2. Detects CPU cores from SLURM, PBS, or psutil
    3. Provides the working-memory budget for the scoped arena
    4. Calculates the number of compression workers for the stream writer
    """

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        memory_safety_factor: float = 0.80,
    ):
        """
        Initialize the resource manager.

        Args:
            config: Configuration dictionary with memory settings
            memory_safety_factor: Fraction of memory to use (default 0.80 = 80%)
        """
        self.config = config or {}
        self.memory_safety_factor = memory_safety_factor

        self.memory_gb = self._detect_memory()
        self.cpu_cores = self._detect_cpus()

        source = self._get_memory_source()
        logger.debug(
            f"ResourceManager: {self.cpu_cores} CPUs, {self.memory_gb:.1f}GB available ({source})"
        )

    def _get_memory_source(self) -> str:
        """Get description of memory detection source for logging."""
        if self.config.get("max_memory_gb"):
            return "config"
        if os.getenv("SLURM_MEM_PER_NODE"):
            return "SLURM"
        if os.getenv("PBS_RESC_MEM"):
            return "PBS"
        cgroup_limit = self._get_cgroup_memory_limit()
        if cgroup_limit:
            return "cgroup"
        return "psutil"

    def _detect_memory(self) -> float:
        """
        Detect available memory limit in GB.

        Priority:
        1. max_memory_gb configuration value
        2. SLURM_MEM_PER_NODE environment variable
        3. PBS_RESC_MEM environment variable
        4. cgroup limits (v1 and v2)
        5. psutil available memory (fallback)

        Returns:
            Memory in GB
        """
        cfg_memory = self.config.get("max_memory_gb")
        if cfg_memory:
            logger.debug(f"Using configured memory limit: {cfg_memory:.1f}GB")
            return float(cfg_memory)

        slurm_mem = os.getenv("SLURM_MEM_PER_NODE")
        if slurm_mem:
            try:
                # SLURM memory is in MB
                slurm_gb = float(slurm_mem) / 1024
                logger.debug(f"Using SLURM allocated memory: {slurm_gb:.1f}GB")
                return slurm_gb
            except (ValueError, TypeError):
                logger.warning(f"Invalid SLURM_MEM_PER_NODE value: {slurm_mem}")

        pbs_mem = os.getenv("PBS_RESC_MEM")
        if pbs_mem:
            try:
                pbs_mem_lower = pbs_mem.lower()
                if pbs_mem_lower.endswith("gb"):
                    pbs_gb = float(pbs_mem_lower.replace("gb", ""))
                elif pbs_mem_lower.endswith("mb"):
                    pbs_gb = float(pbs_mem_lower.replace("mb", "")) / 1024
                else:
                    pbs_gb = float(pbs_mem) / 1024  # Assume MB
                logger.debug(f"Using PBS allocated memory: {pbs_gb:.1f}GB")
                return pbs_gb
            except (ValueError, TypeError):
                logger.warning(f"Invalid PBS_RESC_MEM value: {pbs_mem}")

        try:
            cgroup_limit = self._get_cgroup_memory_limit()
            if cgroup_limit:
                logger.debug(f"Using cgroup memory limit: {cgroup_limit:.1f}GB")
                return cgroup_limit
        except Exception as e:
            logger.debug(f"Could not read cgroup limits: {e}")

        try:
            memory_info = psutil.virtual_memory()
            available_gb = memory_info.available / (1024**3)
            logger.debug(f"Using detected available memory: {available_gb:.1f}GB")
            return float(available_gb)
        except Exception as e:
            logger.warning(f"Could not detect memory: {e}. Using conservative 8GB")
            return 8.0

    def _get_cgroup_memory_limit(self) -> float | None:
        """
        Get memory limit from cgroup (containers/HPC).

        Returns:
            Memory limit in GB or None if not found
        """
        cgroup_paths = [
            "/sys/fs/cgroup/memory/memory.limit_in_bytes",  # cgroup v1
            "/sys/fs/cgroup/memory.max",  # cgroup v2
        ]

        for path in cgroup_paths:
            try:
                if Path(path).exists():
                    with open(path) as f:
                        limit_str = f.read().strip()
                        # cgroup v2 can have "max" string for unlimited
                        if limit_str == "max":
                            continue
                        limit_bytes = int(limit_str)
                        if limit_bytes < (1 << 62):
                            return limit_bytes / (1024**3)
            except (OSError, ValueError) as e:
                logger.debug(f"Could not read {path}: {e}")

        return None

    def _detect_cpus(self) -> int:
        """
        Detect CPU core count.

        Priority:
        1. SLURM_CPUS_PER_TASK environment variable
        2. PBS_NUM_PPN environment variable
        3. psutil physical cores
        4. os.cpu_count()

        Returns:
            Number of CPU cores (fallback to 4 if detection fails)
        """
        for var in ("SLURM_CPUS_PER_TASK", "PBS_NUM_PPN"):
            value = os.getenv(var)
            if value:
                try:
                    cores = int(value)
                    if cores > 0:
                        logger.debug(f"Using {var}={cores}")
                        return cores
                except ValueError:
                    logger.warning(f"Invalid {var} value: {value}")

        try:
            # Prefer physical cores over logical (excludes hyperthreading)
            cores = psutil.cpu_count(logical=False)
            if cores:
                return cores
        except Exception as e:
            logger.debug(f"psutil.cpu_count(logical=False) failed: {e}")

        try:
            cores = os.cpu_count()
            if cores:
                return cores
        except Exception as e:
            logger.debug(f"os.cpu_count() failed: {e}")

        logger.warning("Could not detect CPU count, using conservative 4 cores")
        return 4

    def working_memory_budget(self) -> int:
        """
        Bytes the adjustment engine may hold in working buffers.

        Returns:
            Safe memory budget in bytes
        """
        return int(self.memory_gb * self.memory_safety_factor * (1024**3))

    def auto_workers(self, max_threads: int) -> int:
        """
        Calculate the number of compression workers.

        Args:
            max_threads: Caller's budget for concurrent compression workers

        Returns:
            Number of workers, at least 1 and at most the detected core count
        """
        workers = max(1, min(int(max_threads), self.cpu_cores))
        logger.debug(
            f"Auto workers: {workers} (requested={max_threads}, cpu_limit={self.cpu_cores})"
        )
        return workers
