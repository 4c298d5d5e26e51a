"""nugsentinel: audit and update NuGet package references across repositories."""

__version__ = "0.1.0"
