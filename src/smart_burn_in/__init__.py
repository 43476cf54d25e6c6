"""Smart Burn-in: 基于依赖分析的 CI 测试选择."""

__version__ = "0.1.0"
