import time
from abc import ABC, abstractmethod
from typing import Dict, List
from loguru import logger

from muling.analyzers.structural.graph_builder import TransactionGraph
from muling.utils.pattern_utils import generate_pattern_hash, generate_pattern_id


class BasePatternDetector(ABC):
    """
    Abstract base class for pattern detectors.
    Contains shared functionality for all pattern detection algorithms.
    """

    config_section: str = None

    def __init__(self, config: Dict, network: str = None):
        """
        Initialize the detector with configuration.

        Args:
            config: Configuration dictionary for pattern detection
            network: Network identifier for network-specific configuration overrides
        """
        self.config = config
        self.network = network
        self._validate_config()
        logger.debug(f"Initialized {self.__class__.__name__} for network={network}")

    def _validate_config(self) -> None:
        """
        Validate that the detector's configuration section is present.

        Raises:
            ValueError: If required configuration is missing
        """
        if self.config_section not in self.config:
            raise ValueError(f"Missing '{self.config_section}' section in configuration")

    @abstractmethod
    def detect(self, graph: TransactionGraph) -> List[Dict]:
        """
        Detect patterns in the graph.

        Args:
            graph: Transaction graph snapshot to analyze

        Returns:
            List of pattern dictionaries, each containing:
                - pattern_id: Unique identifier
                - pattern_type: Type of pattern detected
                - pattern_hash: Hash for deduplication
                - addresses_involved: List of involved addresses
                - address_roles: Role of each address in the pattern
                - node_ids: Dense node ids matching addresses_involved
                - detection_timestamp: Unix timestamp of detection
                - evidence_transaction_count: Number of transactions
                - detection_method: Method used for detection
                - (pattern-specific factual fields)
        """
        pass

    def _get_config_value(self, key: str, default=None):
        """
        Get a value from this detector's section with network-specific override support.

        Checks network_overrides first, then falls back to base config.

        Args:
            key: Configuration key within the section
            default: Default value if key not found

        Returns:
            Configuration value with network override if available
        """
        section_config = self.config.get(self.config_section, {})

        if self.network and 'network_overrides' in section_config:
            network_overrides = section_config['network_overrides']
            if self.network in network_overrides:
                network_config = network_overrides[self.network]
                if key in network_config:
                    return network_config[key]

        return section_config.get(key, default)

    def get_setting(self, key: str, default=None):
        """Public read access to this detector's resolved configuration."""
        return self._get_config_value(key, default)

    def _require_int(self, key: str, minimum: int = 0) -> int:
        value = self._get_config_value(key)
        if value is None:
            raise ValueError(f"Missing required '{self.config_section}' parameter: {key}")
        value = int(value)
        if value < minimum:
            raise ValueError(f"'{self.config_section}.{key}' must be >= {minimum}, got {value}")
        return value

    def _build_pattern(
        self,
        pattern_type: str,
        hash_parts: List[str],
        graph: TransactionGraph,
        node_ids: List[int],
        address_roles: List[str],
        detection_method: str,
        evidence_transaction_count: int,
        **fields
    ) -> Dict:
        pattern_hash = generate_pattern_hash(pattern_type, hash_parts)
        pattern = {
            'pattern_id': generate_pattern_id(pattern_type, pattern_hash),
            'pattern_type': pattern_type,
            'pattern_hash': pattern_hash,
            'addresses_involved': graph.labels(node_ids),
            'address_roles': address_roles,
            'node_ids': list(node_ids),
            'detection_timestamp': int(time.time()),
            'evidence_transaction_count': evidence_transaction_count,
            'detection_method': detection_method,
        }
        pattern.update(fields)
        return pattern
