# dccnet

Two small networking tools built on plain sockets, using only the standard
library.

- **Token authentication client** (`dccnet-auth`): talks to a UDP server that
  issues and checks individual and group authentication tokens.
- **Framed link layer** (`dccnet-md5`, `dccnet-xfer`): a stop-and-wait protocol
  over TCP. Each frame carries two sync words (`0xDCC023C2`), an Internet
  checksum, a length, an alternating id and flags (ACK, END, RESET), followed
  by up to 1000 bytes of data. Data frames are retransmitted until they are
  acknowledged.

## Installation

```
pip install .
```

For the test suite:

```
pip install ".[test]"
pytest
```

## Token authentication

```
dccnet-auth <server IP> <server port> <command> [arguments...]
```

| Command | Arguments | Prints |
|---------|-----------|--------|
| `itr` | `<id> <nonce>` | a SAS, `id:nonce:token` |
| `itv` | `<sas>` | `0` if the SAS is valid, `1` otherwise |
| `gtr` | `<N> <sas1> ... <sasN>` | a GAS, `sas1+...+sasN+token` |
| `gtv` | `<gas>` | `0` if the GAS is valid, `1` otherwise |

The server address must be a literal IPv4 or IPv6 address. Each request is
sent up to six times, waiting two seconds for an answer each time. When the
server answers `itr` or `gtr` with an error, the error's description is
printed (for example `Error: A SAS in the request is invalid`); for `itv` and
`gtv` any error prints `1`. Debug logs are written to standard error.

```
dccnet-auth 127.0.0.1 51511 itr ifs4 1
```

With too few arguments the usage is printed and the exit status is 1.

## Framed link layer

### MD5 client

Sends a GAS to authenticate, then, for every line the server sends, writes the
line to the output and replies with the line's MD5 hash in lower-case hex.

```
dccnet-md5 <IP>:<PORT> <GAS> [<OUTPUT> [-d]]
```

Without an output file, lines go to standard error. `-d` turns on debug logs.
A GAS that leaves no room for its newline in one frame is rejected.

### File transfer

Both sides send their input file in 1000-byte frames, write what they receive
to the output file, print a running `<n> bytes received` count on standard
output, and finish by exchanging END frames.

```
dccnet-xfer -s <PORT> <INPUT> <OUTPUT> [v4|v6 [-d]]
dccnet-xfer -c <IP>:<PORT> <INPUT> <OUTPUT> [v4|v6 [-d]]
```

The server listens on every address of the chosen family (IPv4 by default)
and serves a single client. The client splits `<IP>:<PORT>` at the last
colon, so IPv6 addresses may be written directly, for example `::1:51001`;
the address itself decides the family. A RESET frame from the peer ends the
program with `received reset`.

## Library use

- `dccnet.frame`: `Frame` (`encode`, `decode`), `Flag`, `FrameError`,
  `checksum`, `md5_hex`, `send_frame`, `receive_frame`.
- `dccnet.auth_protocol`: `Sas`, `ServerError`, `ProtocolError`,
  `error_message`, the `encode_*_request` builders, `send_receive` and the
  operations `individual_token_request`, `individual_token_validate`,
  `group_token_request`, `group_token_validate`.
- `dccnet.addresses`: `parse_port`, `parse_addr`, `server_addr`,
  `split_host_port`, `AddressError`.
- `dccnet.controller`: `MessageController`, the state shared by the loops.
- `dccnet.operations`: `send_data_wait_ack`, `receive_loop`, `send_md5_loop`,
  `send_xfer_loop`, `print_loop`, `send_ack`, `send_end`, `ResetReceived`.
- `dccnet.session`: `init_server`, `connect_client`, `server_actions`,
  `client_md5_actions`, `client_xfer_actions`.
- `dccnet.logs`: `configure`, `get_logger`, `LogLevel`.

## What it does not do

Only the client sides of the authentication protocol and of the MD5 exchange
are provided; there is no authentication server and no MD5 server. Addresses
are not resolved through DNS; only literal IP addresses are accepted.