"""Building blocks for a Matrix-Feishu bridge: formatting, metrics, provisioning and admin client."""

__version__ = "0.1.1"