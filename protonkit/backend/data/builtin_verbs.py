"""
Built-in Verb Catalog

Settings, fonts, DLL redistributables and applications that ship with
protonkit. Verbs are plain data; the few that need more than the standard
actions use a CustomProcedure defined in this module.
"""

import logging
from pathlib import Path
from typing import List, Sequence

from protonkit.backend.core.errors import NotFoundError
from protonkit.backend.handlers.archive_handler import copy_dll_to_system, extract_archive, extract_cab
from protonkit.backend.handlers.registry_handler import REG_HEADER
from protonkit.backend.models.verb import (
    ApplyRegistryPatch,
    CallVerb,
    CustomProcedure,
    DllOverride,
    ExtractFiltered,
    RegisterFont,
    RemoteFile,
    RunConfigTool,
    RunInstaller,
    SetDllOverride,
    Verb,
    VerbCategory,
)

logger = logging.getLogger(__name__)

FONTS_DIR = "drive_c/windows/Fonts"
CORE_FONTS_URL = "https://github.com/pushcx/corefonts/raw/master/"

VCREDIST_ARGS = ("/install", "/quiet", "/norestart")
NETFX_ARGS = ("/q", "/norestart")

DXVK_DLLS = ("d3d9.dll", "d3d10core.dll", "d3d11.dll", "dxgi.dll")
VKD3D_DLLS = ("d3d12.dll", "d3d12core.dll")
FAUDIO_DLLS = (
    "FAudio.dll",
    "XAudio2_0.dll", "XAudio2_1.dll", "XAudio2_2.dll", "XAudio2_3.dll", "XAudio2_4.dll",
    "XAudio2_5.dll", "XAudio2_6.dll", "XAudio2_7.dll", "XAudio2_8.dll", "XAudio2_9.dll",
    "xaudio2_9redist.dll",
)

DIRECTX_JUN2010 = RemoteFile(
    "https://download.microsoft.com/download/8/4/A/84A35BF1-DAFE-4AE8-82AF-AD2AE20B6B14/directx_Jun2010_redist.exe",
    "directx_Jun2010_redist.exe",
    "8746ee1a84a083a90e37899d71d50d5c7c015e69688a466aa80447f011780c0d",
)

IELPKTH_CAB = RemoteFile(
    "https://downloads.sourceforge.net/corefonts/OldFiles/IELPKTH.CAB",
    "IELPKTH.CAB",
    "c1be3fb8f0042570be76ec6daa03a99142c88367c1bc810240b85827c715961a",
)

# verb, archive, sha256, font file, display name, member filter
CORE_FONTS = [
    ("andale", "andale32.exe", "0524fe42951adc3a7eb870e32f0920313c71f170c859b5f770d82b4ee111e970", "andalemo.ttf", "Andale Mono", "*.TTF"),
    ("arial", "arial32.exe", "85297a4d146e9c87ac6f74822734bdee5f4b2a722d7eaa584b7f2cbf76f478f6", "arial.ttf", "Arial", "*.TTF"),
    ("comicsans", "comic32.exe", "9c6df3feefde26d4e41d4a4fe5db2a89f9123a772594d7f59afd062625cd204e", "comic.ttf", "Comic Sans MS", "*.TTF"),
    ("courier", "courie32.exe", "bb511d861655dde879ae552eb86b134d6fae67cb58502e6ff73ec5d9151f3384", "cour.ttf", "Courier New", "*.ttf"),
    ("georgia", "georgi32.exe", "2c2c7dcda6606ea5cf08918fb7cd3f3359e9e84338dc690013f20cd42e930301", "georgia.ttf", "Georgia", "*.TTF"),
    ("impact", "impact32.exe", "6061ef3b7401d9642f5dfdb5f2b376aa14663f6275e60a51207ad4facf2fccfb", "impact.ttf", "Impact", "*.TTF"),
    ("times", "times32.exe", "db56595ec6ef5d3de5c24994f001f03b2a13e37cee27bc25c58f6f43e8f807ab", "times.ttf", "Times New Roman", "*.TTF"),
    ("trebuchet", "trebuc32.exe", "5a690d9bb8510be1b8b4c025b7f34b90e9e2c881c05c8b8a5a3052525b8a4c5a", "trebuc.ttf", "Trebuchet MS", "*.TTF"),
    ("verdana", "verdan32.exe", "c1cb61255e363166794e47664e2f21af8e3a26cb6346eb8d2ae2fa85dd5aad96", "verdana.ttf", "Verdana", "*.TTF"),
    ("webdings", "webdin32.exe", "64595b5abc1080fba8610c5c34fab5863408e806aafe84653ca8575f82ca9ab6", "webdings.ttf", "Webdings", "*.TTF"),
]

HOME_LINKS = ("My Documents", "Desktop", "Downloads", "My Music", "My Pictures", "My Videos")


def _reg(*sections) -> str:
    """Build a .reg document from (key, [value lines]) pairs."""
    body = "".join(f"\n[{key}]\n" + "".join(f"{line}\n" for line in lines) for key, lines in sections)
    return REG_HEADER + "\n" + body


def _setting(name: str, title: str, *sections) -> Verb:
    return Verb(name, VerbCategory.SETTING, title, "Wine", "", (ApplyRegistryPatch(_reg(*sections)),))


# --- custom procedures ---------------------------------------------------


def _install_dlls(context, root: Path, dir32: str, dir64: str, dlls: Sequence[str]) -> None:
    """
    Copy prebuilt DLLs into the prefix.

    On a 64-bit prefix (syswow64 present) 32-bit builds go to syswow64 and
    64-bit builds to system32; otherwise 32-bit builds go to system32.
    """
    wow64 = context.syswow64_path.exists()
    copied = 0
    for dll in dlls:
        src32 = root / dir32 / dll
        if src32.is_file():
            copy_dll_to_system(src32, context.prefix_path, is_32bit=wow64)
            copied += 1
        else:
            logger.debug(f"{src32} not present in archive, skipping")
        if wow64:
            src64 = root / dir64 / dll
            if src64.is_file():
                copy_dll_to_system(src64, context.prefix_path, is_32bit=False)
                copied += 1
    if not copied:
        raise NotFoundError(f"No DLLs found under {root}")
    logger.info(f"Installed {copied} DLLs from {root.name}")


def _tarball_procedure(url: str, filename: str, top_dir: str, dir32: str, dir64: str, dlls: Sequence[str]):
    def install(context, cache, tmp_dir: Path) -> None:
        archive = cache.fetch(url, filename)
        extract_archive(archive, tmp_dir)
        _install_dlls(context, tmp_dir / top_dir, dir32, dir64, dlls)
    return install


def _directx_procedure(pattern: str):
    """Pull the cabinets matching pattern out of the June 2010 redist and unpack their DLLs."""
    def install(context, cache, tmp_dir: Path) -> None:
        redist = cache.fetch(DIRECTX_JUN2010.url, DIRECTX_JUN2010.filename, DIRECTX_JUN2010.sha256)
        work_dir = tmp_dir / f"directx_{pattern}"
        work_dir.mkdir(parents=True, exist_ok=True)
        extract_cab(redist, work_dir, f"*{pattern}*")

        wow64 = context.syswow64_path.exists()
        cabs = sorted(p for p in work_dir.iterdir() if p.suffix.lower() == ".cab" and pattern in p.name.lower())
        if not cabs:
            raise NotFoundError(f"No {pattern} cabinets found in {DIRECTX_JUN2010.filename}")
        for cab in cabs:
            if "x64" in cab.name.lower():
                if not wow64:
                    continue
                dest = context.system32_path
            else:
                dest = context.syswow64_path if wow64 else context.system32_path
            dest.mkdir(parents=True, exist_ok=True)
            extract_cab(cab, dest, "*.dll")
    return install


def _install_openal(context, cache, tmp_dir: Path) -> None:
    archive = cache.fetch("https://www.openal.org/downloads/oalinst.zip", "oalinst.zip")
    work_dir = tmp_dir / "openal"
    extract_archive(archive, work_dir)
    installer = work_dir / "oalinst.exe"
    if not installer.is_file():
        raise NotFoundError(f"oalinst.exe not found in {archive.name}")
    result = context.run_executable(installer, ["/s"])
    context.wait_for_wineserver()
    result.check_installer(installer.name)


def _isolate_home(context, cache, tmp_dir: Path) -> None:
    """Replace the user folders that link into $HOME with real directories."""
    users = context.drive_c / "users"
    if not users.is_dir():
        return
    for user_dir in users.iterdir():
        if not user_dir.is_dir():
            continue
        for name in HOME_LINKS:
            link = user_dir / name
            if link.is_symlink():
                link.unlink()
                link.mkdir(parents=True, exist_ok=True)
                logger.debug(f"Unlinked {link}")


# --- categories ----------------------------------------------------------


def _settings() -> List[Verb]:
    verbs = []
    for short, title, year in (("win7", "Windows 7", "2009"), ("win8", "Windows 8", "2012"),
                               ("win81", "Windows 8.1", "2013"), ("win10", "Windows 10", "2015"),
                               ("win11", "Windows 11", "2021")):
        verbs.append(Verb(short, VerbCategory.SETTING, f"Set Windows version to {title}", "Microsoft", year,
                          (RunConfigTool(("-v", short)),)))

    drivers = r"HKEY_CURRENT_USER\Software\Wine\Drivers"
    direct3d = r"HKEY_CURRENT_USER\Software\Wine\Direct3D"
    explorer = r"HKEY_CURRENT_USER\Software\Wine\Explorer"
    desktop = r"HKEY_CURRENT_USER\Control Panel\Desktop"

    verbs += [
        _setting("graphics=x11", "Set graphics driver to X11", (drivers, ['"Graphics"="x11"'])),
        _setting("graphics=wayland", "Set graphics driver to Wayland", (drivers, ['"Graphics"="wayland"'])),
        _setting("sound=pulse", "Set sound driver to PulseAudio", (drivers, ['"Audio"="pulse"'])),
        _setting("sound=alsa", "Set sound driver to ALSA", (drivers, ['"Audio"="alsa"'])),
        _setting("sound=disabled", "Disable sound", (drivers, ['"Audio"=""'])),
        _setting("renderer=vulkan", "Set renderer to Vulkan", (direct3d, ['"renderer"="vulkan"'])),
        _setting("renderer=gl", "Set renderer to OpenGL", (direct3d, ['"renderer"="gl"'])),
        _setting("renderer=gdi", "Set renderer to GDI", (direct3d, ['"renderer"="gdi"'])),
        _setting("vd=off", "Disable virtual desktop",
                 (explorer, ['"Desktop"=-']), (explorer + r"\Desktops", ['"Default"=-'])),
    ]
    for size in ("640x480", "800x600", "1024x768", "1280x1024", "1440x900"):
        verbs.append(_setting(f"vd={size}", f"Enable virtual desktop {size}",
                              (explorer, ['"Desktop"="Default"']),
                              (explorer + r"\Desktops", [f'"Default"="{size}"'])))

    verbs += [
        _setting("csmt=on", "Enable CSMT (default)", (direct3d, ['"csmt"=dword:00000001'])),
        _setting("csmt=off", "Disable CSMT", (direct3d, ['"csmt"=dword:00000000'])),
        _setting("fontsmooth=disable", "Disable font smoothing",
                 (desktop, ['"FontSmoothing"="0"', '"FontSmoothingType"=dword:00000000'])),
        _setting("fontsmooth=rgb", "Enable subpixel smoothing RGB",
                 (desktop, ['"FontSmoothing"="2"', '"FontSmoothingType"=dword:00000002',
                            '"FontSmoothingOrientation"=dword:00000001'])),
        _setting("fontsmooth=bgr", "Enable subpixel smoothing BGR",
                 (desktop, ['"FontSmoothing"="2"', '"FontSmoothingType"=dword:00000002',
                            '"FontSmoothingOrientation"=dword:00000000'])),
        _setting("fontsmooth=gray", "Enable grayscale smoothing",
                 (desktop, ['"FontSmoothing"="2"', '"FontSmoothingType"=dword:00000001'])),
        _setting("nocrashdialog", "Disable crash dialog",
                 (r"HKEY_CURRENT_USER\Software\Wine\WineDbg", ['"ShowCrashDialog"=dword:00000000'])),
        _setting("mimeassoc=off", "Disable MIME associations",
                 (r"HKEY_CURRENT_USER\Software\Wine\FileOpenAssociations", ['"Enable"="N"'])),
        _setting("mimeassoc=on", "Enable MIME associations",
                 (r"HKEY_CURRENT_USER\Software\Wine\FileOpenAssociations", ['"Enable"="Y"'])),
        _setting("grabfullscreen=y", "Force cursor clipping fullscreen",
                 (r"HKEY_CURRENT_USER\Software\Wine\X11 Driver", ['"GrabFullscreen"="Y"'])),
        _setting("grabfullscreen=n", "Disable cursor clipping fullscreen",
                 (r"HKEY_CURRENT_USER\Software\Wine\X11 Driver", ['"GrabFullscreen"="N"'])),
        _setting("mwo=force", "MouseWarpOverride force",
                 (r"HKEY_CURRENT_USER\Software\Wine\DirectInput", ['"MouseWarpOverride"="force"'])),
        _setting("mwo=enabled", "MouseWarpOverride enabled",
                 (r"HKEY_CURRENT_USER\Software\Wine\DirectInput", ['"MouseWarpOverride"="enable"'])),
        _setting("mwo=disable", "MouseWarpOverride disable",
                 (r"HKEY_CURRENT_USER\Software\Wine\DirectInput", ['"MouseWarpOverride"="disable"'])),
    ]
    for size in ("512", "1024", "2048"):
        verbs.append(_setting(f"videomemorysize={size}", f"Set VRAM to {size}MB",
                              (direct3d, [f'"VideoMemorySize"="{size}"'])))

    verbs.append(Verb("isolate_home", VerbCategory.SETTING, "Remove links to $HOME", "Wine", "",
                      (CustomProcedure(_isolate_home, "replace $HOME links with directories"),)))
    return verbs


def _fonts() -> List[Verb]:
    verbs = [Verb("corefonts", VerbCategory.FONT, "MS Core Fonts", "Microsoft", "2008",
                  tuple(CallVerb(entry[0]) for entry in CORE_FONTS))]
    for name, archive, sha256, font_file, display, member_filter in CORE_FONTS:
        verbs.append(Verb(name, VerbCategory.FONT, f"MS {display}", "Microsoft", "2008", (
            ExtractFiltered(RemoteFile(CORE_FONTS_URL + archive, archive, sha256), FONTS_DIR, member_filter),
            RegisterFont(font_file, display),
        )))
    verbs += [
        Verb("tahoma", VerbCategory.FONT, "MS Tahoma", "Microsoft", "1999", (
            ExtractFiltered(IELPKTH_CAB, FONTS_DIR, "*.TTF"),
            RegisterFont("tahoma.ttf", "Tahoma"),
        )),
        Verb("lucida", VerbCategory.FONT, "MS Lucida Console", "Microsoft", "1998", (
            ExtractFiltered(IELPKTH_CAB, FONTS_DIR, "lucon.ttf"),
            RegisterFont("lucon.ttf", "Lucida Console"),
        )),
    ]
    return verbs


def _vcredist_pair(name: str, title: str, year: str, base_url: str, tag: str, args=VCREDIST_ARGS,
                   ext: str = "exe") -> Verb:
    return Verb(name, VerbCategory.DYNAMIC_LIBRARY, title, "Microsoft", year, (
        RunInstaller(RemoteFile(f"{base_url}/vcredist_x86.{ext}", f"vcredist_{tag}_x86.exe"), args),
        RunInstaller(RemoteFile(f"{base_url}/vcredist_x64.{ext}", f"vcredist_{tag}_x64.exe"), args),
    ))


def _runtime_pair(name: str, title: str, year: str, url32: str, url64: str) -> Verb:
    return Verb(name, VerbCategory.DYNAMIC_LIBRARY, title, "Microsoft", year, (
        RunInstaller(RemoteFile(url32, url32.rsplit("/", 1)[-1]), VCREDIST_ARGS),
        RunInstaller(RemoteFile(url64, url64.rsplit("/", 1)[-1]), VCREDIST_ARGS),
    ))


def _single_installer(name: str, title: str, publisher: str, year: str, url: str, filename: str, args,
                      sha256=None, category=VerbCategory.DYNAMIC_LIBRARY) -> Verb:
    return Verb(name, category, title, publisher, year, (RunInstaller(RemoteFile(url, filename, sha256), tuple(args)),))


def _dxvk(name: str, title: str, version: str) -> Verb:
    url = f"https://github.com/doitsujin/dxvk/releases/download/v{version}/dxvk-{version}.tar.gz"
    procedure = _tarball_procedure(url, f"dxvk-{version}.tar.gz", f"dxvk-{version}", "x32", "x64", DXVK_DLLS)
    actions = [CustomProcedure(procedure, f"install DXVK {version}")]
    actions += [SetDllOverride(dll[:-4], DllOverride.NATIVE) for dll in DXVK_DLLS]
    return Verb(name, VerbCategory.DYNAMIC_LIBRARY, title, "Philip Rebohle", "2024", tuple(actions))


def _dlls() -> List[Verb]:
    dl = "https://download.microsoft.com/download"
    vs = "https://download.visualstudio.microsoft.com/download/pr"
    verbs = [
        Verb("vcrun2022", VerbCategory.DYNAMIC_LIBRARY, "Visual C++ 2015-2022 Runtime", "Microsoft", "2022", (
            RunInstaller(RemoteFile("https://aka.ms/vs/17/release/vc_redist.x86.exe", "vc_redist.x86.exe"), VCREDIST_ARGS),
            RunInstaller(RemoteFile("https://aka.ms/vs/17/release/vc_redist.x64.exe", "vc_redist.x64.exe"), VCREDIST_ARGS),
        )),
        Verb("vcrun2019", VerbCategory.DYNAMIC_LIBRARY, "Visual C++ 2015-2019 Runtime", "Microsoft", "2019",
             (CallVerb("vcrun2022"),)),
        Verb("vcrun2017", VerbCategory.DYNAMIC_LIBRARY, "Visual C++ 2017 Runtime", "Microsoft", "2017",
             (CallVerb("vcrun2022"),)),
        Verb("vcrun2015", VerbCategory.DYNAMIC_LIBRARY, "Visual C++ 2015 Runtime", "Microsoft", "2015",
             (CallVerb("vcrun2022"),)),
        _vcredist_pair("vcrun2013", "Visual C++ 2013 Runtime", "2013",
                       f"{dl}/2/E/6/2E61CFA4-993B-4DD4-91DA-3737CD5CD6E3", "2013"),
        _vcredist_pair("vcrun2012", "Visual C++ 2012 Runtime", "2012",
                       f"{dl}/1/6/B/16B06F60-3B20-4FF2-B699-5E9B7962F9AE/VSU_4", "2012"),
        _vcredist_pair("vcrun2010", "Visual C++ 2010 Runtime", "2010",
                       f"{dl}/1/6/5/165255E7-1014-4D0A-B094-B6A430A6BFFC", "2010", NETFX_ARGS),
        _vcredist_pair("vcrun2008", "Visual C++ 2008 Runtime", "2008",
                       f"{dl}/5/D/8/5D8C65CB-C849-4025-8E95-C3966CAFD8AE", "2008", ("/q",)),
        _vcredist_pair("vcrun2005", "Visual C++ 2005 Runtime", "2005",
                       f"{dl}/8/B/4/8B42259F-5D70-43F4-AC2E-4B208FD8D66A", "2005", ("/q",), ext="EXE"),

        _single_installer("dotnet48", "MS .NET 4.8", "Microsoft", "2019",
                          f"{vs}/2d6bb6b2-226a-4baa-bdec-798822606ff1/8494001c276a4b96804cde7829c04d7f/ndp48-x86-x64-allos-enu.exe",
                          "ndp48-x86-x64-allos-enu.exe", NETFX_ARGS,
                          "68c9986a8dcc0214d909aa1f31bee9fb5461bb839edca996a75b08ddffc1483f"),
        _single_installer("dotnet472", "MS .NET 4.7.2", "Microsoft", "2018",
                          f"{dl}/6/E/4/6E48E8AB-DC00-419E-9704-06DD46E5F81D/NDP472-KB4054530-x86-x64-AllOS-ENU.exe",
                          "NDP472-KB4054530-x86-x64-AllOS-ENU.exe", NETFX_ARGS,
                          "c908f0a5bea4be282e35acba307d0061b71b8b66ca9894943d3cbb53cad019bc"),
        _single_installer("dotnet462", "MS .NET 4.6.2", "Microsoft", "2016",
                          f"{vs}/8e396c75-4d0d-41d3-aea8-848babc2736a/80b431456d8866ebe053eb8b81a168b3/ndp462-kb3151800-x86-x64-allos-enu.exe",
                          "NDP462-KB3151800-x86-x64-AllOS-ENU.exe", NETFX_ARGS),
        _single_installer("dotnet46", "MS .NET 4.6", "Microsoft", "2015",
                          f"{dl}/6/F/9/6F9673B1-87D1-46C4-BF04-95F24C3EB9DA/enu_netfx/NDP46-KB3045557-x86-x64-AllOS-ENU_exe/NDP46-KB3045557-x86-x64-AllOS-ENU.exe",
                          "NDP46-KB3045557-x86-x64-AllOS-ENU.exe", NETFX_ARGS),
        _single_installer("dotnet40", "MS .NET 4.0", "Microsoft", "2011",
                          f"{dl}/9/5/A/95A9616B-7A37-4AF6-BC36-D6EA96C8DAAE/dotNetFx40_Full_x86_x64.exe",
                          "dotNetFx40_Full_x86_x64.exe", NETFX_ARGS,
                          "65e064258f2e418816b304f646ff9e87af101e4c9552ab064bb74d281c38659f"),
        _single_installer("dotnet35sp1", "MS .NET 3.5 SP1", "Microsoft", "2008",
                          f"{dl}/0/6/1/061F001C-8752-4600-A198-53214C69B51F/dotnetfx35setup.exe",
                          "dotnetfx35setup.exe", ("/q",)),

        _runtime_pair("dotnet6", "MS .NET Runtime 6.0", "2023",
                      f"{vs}/c8af603e-ef3d-4bf4-9c09-26a5de6f3c87/680348e491ff4206daf8064406d6841a/dotnet-runtime-6.0.36-win-x86.exe",
                      f"{vs}/61747fc6-7236-4d5d-a1c8-81f953b3d22a/6dc2e68a7519e9effb54c8c0e3e96e5f/dotnet-runtime-6.0.36-win-x64.exe"),
        _runtime_pair("dotnet7", "MS .NET Runtime 7.0", "2023",
                      f"{vs}/4986134e-391c-4121-aabc-c60ef5d048af/5354323f0a90fc4bf98fed19429aa803/dotnet-runtime-7.0.20-win-x86.exe",
                      f"{vs}/abe74d39-d26f-4a5f-a0e8-80e00a8a7885/d5dc5f5f1e5c3adfbb43dbbe41168a5a/dotnet-runtime-7.0.20-win-x64.exe"),
        _runtime_pair("dotnet8", "MS .NET Runtime 8.0", "2024",
                      f"{vs}/6e1f5faf-ee7e-4869-b480-41eb458cf09f/ae8ee33cc3b0b1b11a8180f0e08e7390/dotnet-runtime-8.0.11-win-x86.exe",
                      f"{vs}/53d7acb6-48a5-4328-8d0b-e5045b96b9bc/a10d41d8ad07d317b8eed6cf4e63d5c2/dotnet-runtime-8.0.11-win-x64.exe"),
        _runtime_pair("dotnetdesktop8", "MS .NET Desktop Runtime 8.0", "2024",
                      f"{vs}/04af55e3-4874-4e62-9bfc-c0a77bfd47f9/1b28c7c9928dec736a10fbd343b67b1e/windowsdesktop-runtime-8.0.11-win-x86.exe",
                      f"{vs}/27bcdd70-ce64-4049-ba24-2b14f9267729/d4a435e55182ce5424757bffc0bfc6b0/windowsdesktop-runtime-8.0.11-win-x64.exe"),

        _dxvk("dxvk", "DXVK (latest)", "2.5.3"),
        _dxvk("dxvk2060", "DXVK 2.6", "2.6"),
        _dxvk("dxvk2050", "DXVK 2.5", "2.5"),
        _dxvk("dxvk2040", "DXVK 2.4", "2.4"),

        Verb("vkd3d", VerbCategory.DYNAMIC_LIBRARY, "vkd3d (Vulkan D3D12)", "Hans-Kristian Arntzen", "2024", (
            CustomProcedure(_tarball_procedure(
                "https://github.com/HansKristian-Work/vkd3d-proton/releases/download/v2.13/vkd3d-proton-2.13.tar.zst",
                "vkd3d-proton-2.13.tar.zst", "vkd3d-proton-2.13", "x86", "x64", VKD3D_DLLS), "install vkd3d-proton 2.13"),
            SetDllOverride("d3d12", DllOverride.NATIVE),
            SetDllOverride("d3d12core", DllOverride.NATIVE),
        )),
        Verb("faudio", VerbCategory.DYNAMIC_LIBRARY, "FAudio (XAudio reimplementation)", "Kron4ek", "2020", (
            CustomProcedure(_tarball_procedure(
                "https://github.com/Kron4ek/FAudio-Builds/releases/download/20.07/faudio-20.07.tar.xz",
                "faudio-20.07.tar.xz", "faudio-20.07", "x32", "x64", FAUDIO_DLLS), "install FAudio 20.07"),
        )),

        Verb("d3dx9", VerbCategory.DYNAMIC_LIBRARY, "MS d3dx9 from DirectX 9 redistributable", "Microsoft", "2010",
             (CustomProcedure(_directx_procedure("d3dx9"), "unpack d3dx9 cabinets"),)),
        Verb("xinput", VerbCategory.DYNAMIC_LIBRARY, "Microsoft XInput (Xbox controller support)", "Microsoft", "2010",
             (CustomProcedure(_directx_procedure("xinput"), "unpack xinput cabinets"),)),
        Verb("d3dcompiler_43", VerbCategory.DYNAMIC_LIBRARY, "MS d3dcompiler_43.dll", "Microsoft", "2010",
             (CustomProcedure(_directx_procedure("d3dcompiler_43"), "unpack d3dcompiler_43 cabinets"),)),
        Verb("d3dcompiler_47", VerbCategory.DYNAMIC_LIBRARY, "MS d3dcompiler_47.dll", "Microsoft", "2019", (
            CustomProcedure(_tarball_procedure(
                "https://github.com/AlicanAky662/d3dcompiler_47/releases/download/2024.12.08/d3dcompiler_47.zip",
                "d3dcompiler_47.zip", ".", "x86", "x64", ("d3dcompiler_47.dll",)), "install d3dcompiler_47"),
            SetDllOverride("d3dcompiler_47", DllOverride.NATIVE),
        )),

        _single_installer("physx", "PhysX", "Nvidia", "2021",
                          "https://us.download.nvidia.com/Windows/9.21.0713/PhysX-9.21.0713-SystemSoftware.exe",
                          "PhysX-9.21.0713-SystemSoftware.exe", ("/s",)),
        _single_installer("xna40", "XNA Framework 4.0", "Microsoft", "2010",
                          f"{dl}/A/C/2/AC2C903B-E6E8-42C2-9FD7-BEBAC362A930/xnafx40_redist.msi",
                          "xnafx40_redist.msi", ("/quiet",),
                          "89eb4cae2a051f127e41f223c9bab6ce7fbd8ff2d9bb8e7e5f90f1e0b8d85b2f"),
        _single_installer("xna31", "XNA Framework 3.1", "Microsoft", "2009",
                          f"{dl}/D/C/2/DC2F9B1E-1A2D-4CF4-8E28-F3B8B5D71930/xnafx31_redist.msi",
                          "xnafx31_redist.msi", ("/quiet",)),
        Verb("openal", VerbCategory.DYNAMIC_LIBRARY, "OpenAL Runtime", "Creative", "2023",
             (CustomProcedure(_install_openal, "run oalinst.exe from oalinst.zip"),)),
        _single_installer("gdiplus", "MS GDI+", "Microsoft", "2011",
                          f"{dl}/a/a/c/aac39226-8825-44ce-90e3-bf8203e74006/WindowsXP-KB975337-x86-ENU.exe",
                          "WindowsXP-KB975337-x86-ENU.exe", ("/extract", "/quiet")),
        Verb("mf", VerbCategory.DYNAMIC_LIBRARY, "MS Media Foundation", "Microsoft", "2011", (
            ApplyRegistryPatch(_reg(
                (r"HKEY_LOCAL_MACHINE\Software\Microsoft\Windows Media Foundation", []),
                (r"HKEY_LOCAL_MACHINE\Software\Microsoft\Windows Media Foundation\HardwareMFT", []),
            )),
        )),
        Verb("quartz", VerbCategory.DYNAMIC_LIBRARY, "MS quartz.dll (DirectShow)", "Microsoft", "2011",
             (SetDllOverride("quartz", DllOverride.NATIVE_BUILTIN),)),
        _single_installer("vb6run", "MS Visual Basic 6 Runtime", "Microsoft", "2004",
                          f"{dl}/5/a/d/5ad868a0-8ecd-4bb0-a882-fe53eb7ef348/VB6.0-KB290887-X86.exe",
                          "VB6.0-KB290887-X86.exe", ("/q",)),
    ]
    return verbs


def _apps() -> List[Verb]:
    return [
        _single_installer("7zip", "7-Zip", "Igor Pavlov", "2024", "https://www.7-zip.org/a/7z2409-x64.exe",
                          "7z2409-x64.exe", ("/S",), category=VerbCategory.APPLICATION),
        _single_installer("vlc", "VLC media player", "VideoLAN", "2015",
                          "https://get.videolan.org/vlc/3.0.21/win64/vlc-3.0.21-win64.exe",
                          "vlc-3.0.21-win64.exe", ("/S",), category=VerbCategory.APPLICATION),
        _single_installer("winrar", "WinRAR", "RARLAB", "1993", "https://www.rarlab.com/rar/winrar-x64-701.exe",
                          "winrar-x64-701.exe", ("/s",), category=VerbCategory.APPLICATION),
    ]


def builtin_verbs() -> List[Verb]:
    """Every built-in verb, settings first, then fonts, DLLs and applications."""
    return _settings() + _fonts() + _dlls() + _apps()


def register_builtin_verbs(registry) -> int:
    """Register the built-in catalog into registry. Returns the number of verbs registered."""
    verbs = builtin_verbs()
    for verb in verbs:
        registry.register(verb)
    return len(verbs)
