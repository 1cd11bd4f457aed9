"""ACL policy parsing and alias expansion, SSH rules, OIDC checks and Noise early payloads for a mesh VPN control server."""

__version__ = "0.1.0"