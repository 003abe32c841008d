from barledger import create_app

app = create_app()
