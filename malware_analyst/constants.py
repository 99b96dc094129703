"""
Static demo content served to the front end.
"""

# Sample sandbox behavior report pre-filled in the demo's report box.
DEFAULT_MALWARE_REPORT = """\
Process: evasive_loader.exe (PID: 1337)
Parent Process: explorer.exe (PID: 1234)

[File System Activity]
- Creates file: C:\\Users\\Admin\\AppData\\Local\\Temp\\updater.dll
- Creates file: C:\\ProgramData\\SystemCache\\config.dat
- Deletes file: C:\\Users\\Admin\\Downloads\\invoice_2024.zip

[Registry Activity]
- Creates key: HKCU\\Software\\Microsoft\\Windows\\CurrentVersion\\Run\\SystemUpdater
- Sets value: HKCU\\Software\\Microsoft\\Windows\\CurrentVersion\\Run\\SystemUpdater -> "rundll32.exe C:\\Users\\Admin\\AppData\\Local\\Temp\\updater.dll,EntryPoint"
- Reads key: HKLM\\SOFTWARE\\Microsoft\\Windows NT\\CurrentVersion\\ProductId

[Network Activity]
- Resolves DNS: evil-c2-server.net
- Connects to IP: 198.51.100.10 on port 443 (TCP)
- HTTP Request: POST /api/v1/checkin HTTP/1.1
- User-Agent: Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36
- POST Data: (base64 encoded system information)
- Resolves DNS: update.microsoft.com (decoy traffic)

[Process Injection]
- Injects code into: svchost.exe (PID: 888)

[Signatures Detected]
- Anti-VM: Checks for VMWare registry keys
- Persistence: Establishes Run key for persistence
- Evasion: Injects into trusted system process
"""
