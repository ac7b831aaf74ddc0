from quickdeploy_sdk.fastly.client import FastlyClient

__all__ = ["FastlyClient"]
