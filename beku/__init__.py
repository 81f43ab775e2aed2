"""beku - gerenciador de dependências do GOPATH."""

__version__ = "0.1.0"
