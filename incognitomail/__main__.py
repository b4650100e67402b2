from incognitomail.cli import app

app(prog_name="incognitomail")
