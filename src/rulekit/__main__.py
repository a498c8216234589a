"""rulekitサーバーのコマンドラインエントリポイント。"""

if __name__ == "__main__":
    import uvicorn

    from rulekit.config import ServerConfig
    from rulekit.server import configure_logging, create_app

    config = ServerConfig()
    configure_logging(config)
    uvicorn.run(create_app(config), host=config.host, port=config.port)
